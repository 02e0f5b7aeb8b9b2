"""
Devio Economy — Reputation & Currency Engine
=============================================
The economy core of the Devio community platform: two parallel point
systems (non-spendable **Aura** reputation and spendable **Cipher**
currency), the vote state machine that drives Aura on posts and comments,
question bounties held in escrow until an answer is accepted, and
threshold-based achievement unlocks.

Package layout::

    devio/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Point values and page sizes
    ├── errors.py          # Economy exception taxonomy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + session helper
    │   ├── models.py      # Ledgers, votes, content, achievements
    │   └── seed.py        # Default achievement catalogue
    ├── engine/
    │   ├── votes.py       # Vote state machine (pure)
    │   └── achievements.py # Threshold selection (pure)
    ├── services/
    │   ├── ledger.py      # Append-only ledger primitives
    │   ├── aura_service.py    # Reputation awards + computed total
    │   ├── cipher_service.py  # Currency awards, spends, projection
    │   ├── vote_service.py    # Transactional vote application
    │   ├── bounty_service.py  # Question bounty escrow
    │   ├── achievement_service.py # Unlocks + rewards
    │   ├── counters.py        # Criteria → counting query registry
    │   ├── notification_service.py # In-app notifications
    │   └── dispatch.py        # Fire-and-forget side effects
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, config, bearer-token actor
        └── routes/        # Economy REST endpoints
"""

__version__ = "0.1.0"
