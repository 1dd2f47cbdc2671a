from atlas_assistant.domain.orchestration.fallback.reasoning_extractors import (
    EMPTY_RESPONSE_MESSAGE,
    ActionNameExtractor,
    ReasoningExtractor,
    ReasoningFallbackChain,
    StaticHelpExtractor,
    StructuredMarkerExtractor,
)

KNOWN = ["addMessageV1", "addLeadV1", "refundOrderV1"]


def test_structured_marker_returns_reasoning_verbatim() -> None:
    extractor = StructuredMarkerExtractor()

    assert extractor.extract("Action: addLeadV1", KNOWN) == "Action: addLeadV1"
    assert extractor.extract("```json\n{}\n```", KNOWN) == "```json\n{}\n```"
    assert extractor.extract("just thinking", KNOWN) is None


def test_action_name_picks_earliest_mention() -> None:
    text = "Maybe addLeadV1, but addMessageV1 came up first? no, addLeadV1."

    assert ActionNameExtractor.find_action(text, KNOWN) == "addLeadV1"


def test_action_name_respects_word_boundaries() -> None:
    assert ActionNameExtractor.find_action("use addLeadV10 here", KNOWN) is None
    assert ActionNameExtractor.find_action("use ADDLEADV1 here", KNOWN) == "addLeadV1"


def test_action_name_builds_suggestion() -> None:
    response = ActionNameExtractor().extract("I would go with refundOrderV1", KNOWN)

    assert "**refundOrderV1**" in response
    assert '"type": "refundOrderV1"' in response


def test_static_help_lists_highlighted_actions() -> None:
    response = StaticHelpExtractor(["addLeadV1"]).extract("hmm", KNOWN)

    assert "- **addLeadV1**" in response
    assert "addMessageV1" not in response


def test_chain_falls_through_in_order() -> None:
    chain = ReasoningFallbackChain()

    assert chain.salvage("Action: x", KNOWN) == "Action: x"
    assert "**addMessageV1**" in chain.salvage("send addMessageV1", KNOWN)
    assert "common ones" in chain.salvage("nothing useful", KNOWN)


def test_chain_without_reasoning_or_matches() -> None:
    class Never(ReasoningExtractor):
        name = "never"

        def extract(self, reasoning, known_actions):
            return None

    assert ReasoningFallbackChain().salvage(None, KNOWN) == EMPTY_RESPONSE_MESSAGE
    assert ReasoningFallbackChain().salvage("   ", KNOWN) == EMPTY_RESPONSE_MESSAGE
    assert ReasoningFallbackChain([Never()]).salvage("text", KNOWN) == EMPTY_RESPONSE_MESSAGE
