import logging
from typing import Dict, List

from court_scheduler.models import BookingFlowType, FlowStep, StepLabel, Venue

logger = logging.getLogger(__name__)

DEFAULT_FLOW = BookingFlowType.DATE_COURT_TIME_DURATION

_ICONS: Dict[StepLabel, str] = {
    StepLabel.DATE: "event",
    StepLabel.COURT: "sports_tennis",
    StepLabel.TIME: "schedule",
    StepLabel.DURATION: "timer",
    StepLabel.PAYMENT: "payment",
}


def _steps(*labels: StepLabel) -> List[FlowStep]:
    return [FlowStep(step=i, label=label, icon=_ICONS[label]) for i, label in enumerate(labels, start=1)]


BOOKING_FLOWS: Dict[BookingFlowType, List[FlowStep]] = {
    BookingFlowType.DATE_COURT_TIME_DURATION: _steps(
        StepLabel.DATE, StepLabel.COURT, StepLabel.TIME, StepLabel.DURATION, StepLabel.PAYMENT
    ),
    BookingFlowType.DATE_TIME_DURATION_COURT: _steps(
        StepLabel.DATE, StepLabel.TIME, StepLabel.DURATION, StepLabel.COURT, StepLabel.PAYMENT
    ),
    BookingFlowType.DATE_TIME_COURT_DURATION: _steps(
        StepLabel.DATE, StepLabel.TIME, StepLabel.COURT, StepLabel.DURATION, StepLabel.PAYMENT
    ),
}


def resolve_flow(venue: Venue | None) -> BookingFlowType:
    """Picks the booking flow configured for a venue, or the default one."""
    identifier = venue.settings.booking_flow if venue and venue.settings else None
    if not identifier:
        return DEFAULT_FLOW

    try:
        return BookingFlowType(identifier)
    except ValueError:
        logger.warning(f"Unsupported booking flow '{identifier}' for venue {venue.id}, using {DEFAULT_FLOW.value}")
        return DEFAULT_FLOW


def get_flow_steps(flow_type: BookingFlowType) -> List[FlowStep]:
    return list(BOOKING_FLOWS[flow_type])


def step_index(flow_type: BookingFlowType, label: StepLabel) -> int:
    """Position of `label` within the flow, or -1 if it is not part of it."""
    for index, step in enumerate(BOOKING_FLOWS[flow_type]):
        if step.label == label:
            return index
    return -1


def get_next_step(flow_type: BookingFlowType, label: StepLabel) -> int:
    """Step number following `label`, or -1 at the end of the flow."""
    steps = BOOKING_FLOWS[flow_type]
    index = step_index(flow_type, label)
    if index < 0 or index >= len(steps) - 1:
        return -1
    return steps[index + 1].step


def get_previous_step(flow_type: BookingFlowType, label: StepLabel) -> int:
    """Step number preceding `label`, or -1 at the start of the flow."""
    steps = BOOKING_FLOWS[flow_type]
    index = step_index(flow_type, label)
    if index <= 0:
        return -1
    return steps[index - 1].step
