"""
State service.

Creates the singleton rows (round + admin) on first start and gives
the rest of the code one place to read them without locking.
"""
import logging

from sqlalchemy.orm import Session

from models import RoundState, AdminState, ROUND_ROW_ID, ADMIN_ROW_ID

logger = logging.getLogger(__name__)


def init_state(db: Session, settings) -> RoundState:
    """
    Seed the round (closed, empty) and admin rows if they do not exist.

    Idempotent: an existing round keeps its state across restarts.
    """
    round_state = db.query(RoundState).filter(RoundState.id == ROUND_ROW_ID).first()
    if round_state is None:
        round_state = RoundState(
            id=ROUND_ROW_ID,
            round_number=0,
            close_time=0,
            stake_amount=settings.initial_stake_amount,
            extension_delay=settings.initial_extension_delay,
            fund=0,
            last_contributor=None,
            last_contribution_time=None,
        )
        db.add(round_state)
        logger.info(
            f"Initialized round state (stake={settings.initial_stake_amount}, "
            f"delay={settings.initial_extension_delay})"
        )

    admin = db.query(AdminState).filter(AdminState.id == ADMIN_ROW_ID).first()
    if admin is None:
        db.add(AdminState(id=ADMIN_ROW_ID, admin_identity=settings.admin_identity))
        logger.info(f"Initialized admin identity {settings.admin_identity}")

    db.commit()
    return round_state


def get_round_state(db: Session) -> RoundState:
    """Latest committed round row (unlocked read)."""
    round_state = db.query(RoundState).filter(RoundState.id == ROUND_ROW_ID).first()
    if round_state is None:
        raise RuntimeError("Round state not initialized; call init_state() first")
    return round_state


def get_admin_state(db: Session) -> AdminState:
    admin = db.query(AdminState).filter(AdminState.id == ADMIN_ROW_ID).first()
    if admin is None:
        raise RuntimeError("Admin state not initialized; call init_state() first")
    return admin
