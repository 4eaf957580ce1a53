from notes_agent.agent.heuristics import (
    extract_doc_filename,
    extract_docs_query,
    extract_weather_location,
    plan_tools,
)


def test_weather_and_notes_prompt_wants_both() -> None:
    signal = plan_tools("What's the weather and what did we learn last week?")

    assert signal.wants_weather
    assert signal.wants_docs
    assert not signal.wants_list


def test_forecast_triggers_weather() -> None:
    assert plan_tools("Any forecast for tomorrow?").wants_weather


def test_summarize_notes_does_not_trigger_weather() -> None:
    signal = plan_tools("Summarize last week's notes.")

    assert not signal.wants_weather
    assert signal.wants_docs


def test_list_requires_a_verb_and_a_noun() -> None:
    assert plan_tools("How many notes do I have?").wants_list
    assert plan_tools("List the titles").wants_list
    assert not plan_tools("Make a list of groceries").wants_list


def test_blank_prompt_yields_empty_signal() -> None:
    signal = plan_tools("")

    assert (signal.wants_weather, signal.wants_docs, signal.wants_list) == (False, False, False)


def test_extract_weather_location_stops_at_clause_boundary() -> None:
    assert extract_weather_location("What's the weather in Paris and my notes?") == "Paris"
    assert extract_weather_location("Forecast for New York, please") == "New York"
    assert extract_weather_location("Hello there") is None


def test_extract_docs_query_prefers_notes_clause() -> None:
    query = extract_docs_query("What's the weather and what did we learn last week?")

    assert query == "what did we learn last week"


def test_extract_docs_query_falls_back_to_prompt() -> None:
    assert extract_docs_query("tell me something") == "tell me something"


def test_extract_doc_filename_variants() -> None:
    assert extract_doc_filename("Summarize phase 1 week 2") == "phase-1-week-2"
    assert extract_doc_filename("week 3, phase 2 please") == "phase-2-week-3"
    assert extract_doc_filename("open p1w4") == "phase-1-week-4"
    assert extract_doc_filename("open roadmap.md") == "roadmap"
    assert extract_doc_filename("what did we learn?") is None
