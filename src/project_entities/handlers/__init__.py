"""Entity type handlers."""

from project_entities.handlers.actor import ActorHandler
from project_entities.handlers.assumption import AssumptionHandler
from project_entities.handlers.consideration import ConsiderationHandler
from project_entities.handlers.constraint import ConstraintHandler
from project_entities.handlers.decision import DecisionHandler
from project_entities.handlers.deliverable import DeliverableHandler
from project_entities.handlers.objective import ObjectiveHandler
from project_entities.handlers.problem import ProblemHandler
from project_entities.handlers.quality import QualityHandler
from project_entities.handlers.risk import RiskHandler
from project_entities.handlers.task import TaskHandler
from project_entities.handlers.vision import VisionHandler

__all__ = [
    "VisionHandler",
    "ObjectiveHandler",
    "DeliverableHandler",
    "QualityHandler",
    "ConsiderationHandler",
    "DecisionHandler",
    "RiskHandler",
    "ProblemHandler",
    "AssumptionHandler",
    "ConstraintHandler",
    "ActorHandler",
    "TaskHandler",
]
