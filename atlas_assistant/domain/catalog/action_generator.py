from typing import Dict, List, Any, Optional, Sequence, Union
import uuid

import structlog

from atlas_assistant.domain.catalog.catalog_index import CatalogIndex
from atlas_assistant.domain.errors import ChatValidationError
from atlas_assistant.domain.models.chat_state import Action

logger = structlog.get_logger(__name__)

ActionSpec = Union[str, Dict[str, Any]]

ACTION_DESCRIPTIONS: Dict[str, str] = {
    "updateContactTypeV1": "Update the contact type for customer service routing",
    "applyResolutionV1": "Apply resolution with refund and compensation details",
    "updateContactTierV1": "Escalate contact to higher tier for additional support",
    "createBlacklistEntryV1": "Create blacklist entry to prevent future interactions",
    "addMessageV1": "Send automated message response to customer",
    "updateContactStatusV1": "Update contact status to mark as resolved",
    "accountLockdownV1": "Lock down user account for security purposes",
    "addUserNoteV1": "Add internal note to user profile",
    "adjustFareV1": "Adjust trip fare amount with specified reason",
    "refundEaterV1": "Process refund for eater/customer",
    "banClientV1": "Ban client account with specified reason",
    "addTripNoteV1": "Add note to trip record for reference",
    "sendNotificationV1": "Send notification to user",
    "updateUserInfoV1": "Update user profile information",
    "deleteAccountV1": "Delete user account permanently",
}

SCENARIOS: Dict[str, List[Dict[str, Any]]] = {
    "food_tampering_resolution": [
        {
            "type": "updateContactTypeV1",
            "constants": {"ContactTypeID": "ed83fbbf-01bc-4bfc-a200-2ee8d4ae7368"},
            "description": "Route to food safety specialist"
        },
        {
            "type": "applyResolutionV1",
            "constants": {
                "SaveResolutionOnly": "false",
                "ShouldCheckEligibility": "true",
                "IssueType": "FOOD_SAFETY",
                "PalantirActionType": "REFUND",
                "Reason": "FOOD_TAMPERING",
                "RefundType": "REFUND_TO_ORIGINAL_PAYMENT"
            },
            "description": "Apply full refund for food tampering incident"
        },
        {
            "type": "addMessageV1",
            "constants": {"Locale": "en", "MacroID": "40dcbd63-474b-478a-9dc1-7a0d1742d657"},
            "description": "Send acknowledgment message for food tampering report"
        },
        {
            "type": "updateContactStatusV1",
            "constants": {"Status": "SOLVED"},
            "description": "Mark contact as resolved"
        }
    ],
    "account_security_issue": [
        {
            "type": "accountLockdownV1",
            "constants": {"SendNotifyEmail": "true", "SendNotifySMS": "true"},
            "description": "Lock account and notify user via email and SMS"
        },
        {
            "type": "addUserNoteV1",
            "constants": {"Tenancy": "security"},
            "description": "Add security incident note to user profile"
        },
        {
            "type": "updateContactTierV1",
            "constants": {"EscalationReason": "Security Incident", "Tier": "TIER3"},
            "description": "Escalate to security team"
        }
    ],
    "fare_adjustment": [
        {
            "type": "adjustFareV1",
            "constants": {
                "Reason": "ROUTE_DEVIATION",
                "RefundStrategy": "IMMEDIATE",
                "TransactionCategory": "FARE_ADJUSTMENT"
            },
            "description": "Adjust fare due to route deviation"
        },
        {
            "type": "addTripNoteV1",
            "constants": {"Tenancy": "operations"},
            "description": "Add note explaining fare adjustment"
        },
        {
            "type": "sendNotificationV1",
            "constants": {"ForceSendNotification": "true"},
            "description": "Notify user of fare adjustment"
        }
    ]
}


class ActionGenerator:
    """Builds ready-to-fill action payloads from catalog entries"""

    def __init__(self, catalog: CatalogIndex):
        self.catalog = catalog

    @staticmethod
    def describe(name: str) -> str:
        return ACTION_DESCRIPTIONS.get(name, f"Execute {name} action")

    def build_payload(
        self,
        action: Action,
        argument_values: Optional[Dict[str, Any]] = None,
        constants: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None
    ) -> Dict[str, Any]:
        """Payload with required arguments filled and optional ones listed as constants"""

        argument_values = argument_values or {}
        payload = {
            "actionType": action.name,
            "arguments": {},
            "constants": {},
            "description": description or self.describe(action.name),
            "descriptionTemplateCalculators": {},
            "idempotenceType": None,
            "name": "",
            "shouldSkip": None,
            "descriptionRosettaKey": None
        }

        # Unset required arguments get a placeholder id
        for arg in action.required_arguments:
            payload["arguments"][arg.name] = argument_values.get(arg.name) or str(uuid.uuid4())

        for arg in action.optional_arguments:
            if argument_values.get(arg.name):
                payload["arguments"][arg.name] = argument_values[arg.name]
            else:
                payload["constants"][arg.name] = ""

        payload["constants"].update(constants or {})
        return payload

    def generate(self, specs: Sequence[ActionSpec]) -> List[Dict[str, Any]]:
        """Payloads for a sequence of names or {type, arguments, constants, description} specs"""

        payloads = []
        for spec in specs:
            if isinstance(spec, str):
                spec = {"type": spec}
            elif not isinstance(spec, dict):
                raise ChatValidationError(f"Invalid action spec: {spec!r}")
            elif not all(isinstance(spec.get(key) or {}, dict) for key in ("arguments", "constants")):
                raise ChatValidationError(f"Arguments and constants must be objects: {spec!r}")

            name = spec.get("type") or spec.get("name")
            action = self.catalog.find_by_name(name) if name else None
            if action is None:
                logger.warning("Action type not found in catalog", action_type=name)
                continue

            payloads.append(self.build_payload(
                action,
                argument_values=spec.get("arguments"),
                constants=spec.get("constants"),
                description=spec.get("description")
            ))

        return payloads

    @staticmethod
    def scenario(name: str) -> List[Dict[str, Any]]:
        return [dict(step) for step in SCENARIOS.get(name, [])]

    def search(self, query: str) -> List[Action]:
        """Actions whose name or description contains the query"""

        query_lower = query.lower()
        return [
            action for action in self.catalog
            if query_lower in action.name.lower() or query_lower in self.describe(action.name).lower()
        ]

    def actions_for_request(self, request: str) -> List[Dict[str, Any]]:
        """Route a free-text request to a scenario or the top search hits"""

        request_lower = request.lower()

        if "food" in request_lower and "tamper" in request_lower:
            return self.generate(self.scenario("food_tampering_resolution"))

        if "security" in request_lower or ("account" in request_lower and "lock" in request_lower):
            return self.generate(self.scenario("account_security_issue"))

        if "fare" in request_lower and "adjust" in request_lower:
            return self.generate(self.scenario("fare_adjustment"))

        matches = self.search(request)
        if matches:
            return self.generate([action.name for action in matches[:3]])

        return []

    def list_actions(self) -> List[Dict[str, Any]]:
        """Summary of every catalog action"""

        return [
            {
                "type": action.name,
                "description": self.describe(action.name),
                "requiredArgs": len(action.required_arguments),
                "optionalArgs": len(action.optional_arguments)
            }
            for action in self.catalog
        ]
