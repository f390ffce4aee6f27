from .db import (
    Base,
    Reminder,
    ScheduledPayment,
    DigestUser,
    ReminderStore,
    PaymentStore,
    DigestUserStore,
    get_engine,
    get_session,
    create_all,
    dispose_engine,
)  # noqa: F401
