"""Actor handler."""

from project_entities.handler import CollectionHandler
from project_entities.models import Actor, ActorPatch


class ActorHandler(CollectionHandler[Actor, ActorPatch]):
    """Actors stored together in actors.yaml."""

    entity_type = "actor"
    entity_class = Actor
    patch_class = ActorPatch
