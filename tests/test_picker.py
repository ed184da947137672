from conftest import ScriptedPrompter
from intune_clone_tool.models import ResourceSummary
from intune_clone_tool.picker import Prompter, find_by_name, parse_selection, pick_resource

ITEMS = [
    ResourceSummary(id="1", name="Alpha", kind="platformScript"),
    ResourceSummary(id="2", name="Beta", kind="platformScript"),
    ResourceSummary(id="3", name="Gamma", kind="platformScript"),
]


def test_one_based_selection():
    assert pick_resource(ITEMS, ScriptedPrompter(["2"])).name == "Beta"


def test_blank_input_cancels():
    assert pick_resource(ITEMS, ScriptedPrompter([""])) is None


def test_invalid_selection_reprompts():
    prompter = ScriptedPrompter(["0", "abc", "4", "3"])
    assert pick_resource(ITEMS, prompter).name == "Gamma"
    assert sum(1 for line in prompter.output if line.startswith("Invalid selection")) == 3


def test_list_is_numbered():
    prompter = ScriptedPrompter([""])
    pick_resource(ITEMS, prompter)
    assert any("1. Alpha" in line for line in prompter.output)
    assert any("3. Gamma" in line for line in prompter.output)


def test_empty_list_returns_none_without_prompting():
    prompter = ScriptedPrompter(["1"])
    assert pick_resource([], prompter) is None
    assert prompter.answers == ["1"]


def test_parse_selection_bounds():
    assert parse_selection(" 1 ", 3) == 0
    assert parse_selection("3", 3) == 2
    assert parse_selection("-1", 3) is None


def test_find_by_name_is_trimmed_and_case_insensitive():
    assert find_by_name(ITEMS, "  beta ").id == "2"
    assert find_by_name(ITEMS, "Bet") is None


def test_confirm_accepts_only_affirmative_tokens():
    answers = iter(["y", "YES", "n", "", "sure"])
    prompter = Prompter(ask=lambda label, default: next(answers), echo=lambda line: None)
    assert [prompter.confirm("Again?") for _ in range(5)] == [True, True, False, False, False]
