from typing import Sequence
import json

from atlas_assistant.domain.models.chat_state import Action

CONTINUATION_MARKER = (
    "\n\n---\n"
    "*This response was cut off because it reached the length limit. "
    "Type \"continue\" to see the rest.*"
)

RESPONSE_FORMAT = """CRITICAL INSTRUCTIONS - You MUST follow this format exactly:

1. Always start your response with a clear heading using ###
2. Always provide a complete JSON example using markdown code blocks
3. Be concise but comprehensive
4. Use this exact structure:

### Action: [actionName]
**Purpose**: [Brief description]
**Required Arguments**: [List them clearly]
**Optional Arguments**: [List common ones]
**Example Usage**:
```json
{
  "type": "actionName",
  "arguments": {
    "requiredArg1": "example_value",
    "requiredArg2": "example_value",
    "optionalArg1": "example_value"
  }
}
```

Only describe actions that appear in the list above. If none of them fits the
question, say so and suggest the closest ones."""


class PromptBuilder:
    """Builds the system prompt and continuation instructions"""

    def system_prompt(self, actions: Sequence[Action], catalog_size: int) -> str:
        """System prompt embedding the selected actions as JSON"""

        context = json.dumps([action.to_context() for action in actions], indent=2)

        return (
            "You are an AI assistant that helps users understand and work with API actions "
            "from an action catalog.\n\n"
            f"The catalog contains {catalog_size} different action types, each with required "
            "and optional arguments.\n\n"
            f"Here are the {len(actions)} actions most relevant to this conversation:\n"
            f"```json\n{context}\n```\n\n"
            "Each action has:\n"
            "- name: The name/identifier of the action\n"
            "- requiredArguments: Arguments that must be provided\n"
            "- optionalArguments: Arguments that can be optionally provided\n\n"
            f"{RESPONSE_FORMAT}\n\n"
            "Be helpful, accurate, and always include practical examples."
        )

    def continuation_instruction(self, original_query: str) -> str:
        """User turn asking the model to resume a truncated answer"""

        return (
            "Please continue your previous response exactly where it was cut off. "
            "Do not repeat what you already wrote and keep the same format.\n\n"
            f"For reference, the original question was: \"{original_query}\""
        )

    @staticmethod
    def mark_truncated(response: str) -> str:
        return f"{response}{CONTINUATION_MARKER}"
