"""Backend services."""

from services.distribution import (
    DistributionBalancer,
    DistributionDialog,
    dual_distribution_dialog,
    remote_distribution_dialog,
)
from services.quote_state import QuoteStateStore
from services.workflow import MappingFormReader, Notification, QuoteWorkflow

__all__ = [
    "DistributionBalancer",
    "DistributionDialog",
    "dual_distribution_dialog",
    "remote_distribution_dialog",
    "QuoteStateStore",
    "MappingFormReader",
    "Notification",
    "QuoteWorkflow",
]
