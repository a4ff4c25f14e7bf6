"""State schema for the booking wizard.

Five linear steps plus a processing status while the simulated payment runs.
Forward moves go one step at a time; backward moves are always allowed.
"""
from enum import Enum, IntEnum
from typing import Dict, List


class WizardStep(IntEnum):
    """Booking wizard steps, in order."""
    SERVICE = 1
    PROFESSIONAL = 2
    DATE_TIME = 3
    CUSTOMER_INFO = 4
    PAYMENT = 5


class WizardStatus(str, Enum):
    """Lifecycle of one wizard instance."""
    READY = "ready"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


STEP_TITLES: Dict[WizardStep, str] = {
    WizardStep.SERVICE: "Serviço",
    WizardStep.PROFESSIONAL: "Profissional",
    WizardStep.DATE_TIME: "Horário",
    WizardStep.CUSTOMER_INFO: "Seus Dados",
    WizardStep.PAYMENT: "Pagamento",
}


# State machine transition map
# Pattern: Current step → [allowed next steps]
VALID_TRANSITIONS: Dict[WizardStep, List[WizardStep]] = {
    WizardStep.SERVICE: [
        WizardStep.PROFESSIONAL,
    ],
    WizardStep.PROFESSIONAL: [
        WizardStep.DATE_TIME,
        WizardStep.SERVICE,
    ],
    WizardStep.DATE_TIME: [
        WizardStep.CUSTOMER_INFO,
        WizardStep.PROFESSIONAL,
        WizardStep.SERVICE,
    ],
    WizardStep.CUSTOMER_INFO: [
        WizardStep.PAYMENT,
        WizardStep.DATE_TIME,
        WizardStep.PROFESSIONAL,
        WizardStep.SERVICE,
    ],
    WizardStep.PAYMENT: [
        WizardStep.CUSTOMER_INFO,
        WizardStep.DATE_TIME,
        WizardStep.PROFESSIONAL,
        WizardStep.SERVICE,
    ],
}


def validate_transition(current: WizardStep, intended: WizardStep) -> bool:
    """
    Validate step transition.

    Prevents:
    - Skipping steps forward
    - Staying on the same step via a transition

    Example:
        >>> validate_transition(WizardStep.SERVICE, WizardStep.PROFESSIONAL)
        True
        >>> validate_transition(WizardStep.SERVICE, WizardStep.DATE_TIME)
        False
    """
    return intended in VALID_TRANSITIONS.get(current, [])
