"""Prompt composition for the generation service."""
from typing import List

from models.turn import AssembledHistory, GenerationRequest, IncomingTurn, Turn


class PromptComposer:
    """Render an ordered conversation plus the new message into one prompt."""

    PREAMBLE = "Chat history:"
    INSTRUCTION_LABEL = "Prompt:"

    @classmethod
    def compose(cls, history: List[Turn], new_turn: Turn) -> str:
        """
        Build the prompt text.

        Every turn, including the new one, becomes a "<Role>: <content>" line
        after the preamble; the raw new message follows as the instruction.

        Args:
            history: Persisted turns, ordered ascending by timestamp
            new_turn: The not yet persisted user turn

        Returns:
            Complete prompt string
        """
        lines = [cls.PREAMBLE]
        for turn in [*history, new_turn]:
            lines.append(f"{turn.role.value.title()}: {turn.content}")
        lines.append("")
        lines.append(f"{cls.INSTRUCTION_LABEL} {new_turn.content}")
        return "\n".join(lines)

    @classmethod
    def build_request(
        cls,
        incoming: IncomingTurn,
        assembled: AssembledHistory,
        new_turn: Turn
    ) -> GenerationRequest:
        """Bundle the composed prompt with the resolved context."""
        return GenerationRequest(
            prompt=cls.compose(assembled.history, new_turn),
            chat_id=incoming.chat_id,
            object=assembled.subject,
            user_id=incoming.user_id,
            image=assembled.image,
        )
