"""AI Engine Binder: list, create and select the AI connection for a project."""

import logging

from pydantic import ValidationError

from ..api.client import ApiClient, path_segment
from ..exceptions import ApiError, WizardValidationError
from ..models.ai import AIConnectionDescriptor, CreateAIConnectionRequest

logger = logging.getLogger(__name__)


class AIEngineBinder:
    """Holds the workspace's AI connections and the one chosen for onboarding.

    Nothing is selected after ``list_ai_connections()``; only a connection
    created here, or one picked explicitly, becomes ``selected_id``. A
    skipped AI step therefore onboards without an AI connection.
    """

    def __init__(self, api: ApiClient, workspace: str):
        self.api = api
        self.workspace = workspace
        self.connections: list[AIConnectionDescriptor] = []
        self.selected_id: int | None = None

    async def list_ai_connections(self) -> list[AIConnectionDescriptor]:
        """Fetch AI connections; a failure leaves an empty list."""
        try:
            body = await self.api.get(f"/{path_segment(self.workspace)}/ai/list")
            self.connections = [AIConnectionDescriptor.model_validate(i) for i in body or []]
        except (ApiError, ValidationError) as e:
            logger.warning(f"[AIEngineBinder] Could not list AI connections: {e}")
            self.connections = []
        return self.connections

    async def create_ai_connection(
        self, request: CreateAIConnectionRequest
    ) -> AIConnectionDescriptor:
        """Create a connection, append it and select it.

        Raises:
            WizardValidationError: Model or API key missing; nothing is sent.
            ApiError: The server rejected the connection.
        """
        if not request.ai_model.strip():
            raise WizardValidationError("AI model is required", field="ai_model")
        if not request.api_key.get_secret_value().strip():
            raise WizardValidationError("API key is required", field="api_key")

        body = await self.api.post(
            f"/{path_segment(self.workspace)}/ai/create", json=request.to_payload()
        )
        connection = AIConnectionDescriptor.model_validate(body)
        self.connections.append(connection)
        self.selected_id = connection.id
        logger.info(
            f"[AIEngineBinder] Created AI connection {connection.id} "
            f"({connection.provider_key.value}/{connection.ai_model})"
        )
        return connection

    def select(self, connection_id: int | None) -> None:
        """Pick an existing connection, or clear the choice with None."""
        if connection_id is not None and not any(c.id == connection_id for c in self.connections):
            raise WizardValidationError(
                f"Unknown AI connection {connection_id}", field="ai_connection_id"
            )
        self.selected_id = connection_id

    @property
    def selected(self) -> AIConnectionDescriptor | None:
        return next((c for c in self.connections if c.id == self.selected_id), None)
