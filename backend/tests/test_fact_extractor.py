from pitchside.services.fact_extractor import coerce_scalar, extract, extract_from_text, strip_structured_blocks


def test_structured_block_is_trusted_and_removed() -> None:
    reply = (
        "Expect clouds this afternoon at the ground.\n"
        '<weather_data>{"temperature": [24.5], "condition": ["Clouds"], "precipitation": 10, '
        '"wind": null, "visualType": "forecast"}</weather_data>\n'
        "Enjoy the match!"
    )

    fact, cleaned = extract(reply)

    assert fact.temperature == 24.5
    assert fact.condition == "clouds"
    assert fact.precipitation == 10
    assert fact.wind is None
    assert fact.visual_type == "forecast"
    assert fact.verified is True
    assert "<weather_data" not in cleaned
    assert "</weather_data>" not in cleaned
    assert "Expect clouds this afternoon" in cleaned
    assert "Enjoy the match!" in cleaned


def test_structured_block_inside_code_fence_still_parses() -> None:
    reply = 'Sunny spells.<weather_data>```json\n{"temperature": 19, "visual_type": "chart"}\n```</weather_data>'

    fact, cleaned = extract(reply)

    assert fact.verified is True
    assert fact.temperature == 19
    assert fact.visual_type == "chart"
    assert cleaned == "Sunny spells."


def test_unknown_visual_type_in_block_falls_back_to_default() -> None:
    fact, _ = extract('<weather_data>{"temperature": 12, "visualType": "radar"}</weather_data>')

    assert fact.visual_type == "default"
    assert fact.verified is True


def test_malformed_block_falls_back_to_text_matching() -> None:
    reply = "It's 22°C and sunny right now. <weather_data>{temperature: oops</weather_data>"

    fact, cleaned = extract(reply)

    assert fact.verified is False
    assert fact.temperature == 22
    assert fact.condition == "clear"
    assert cleaned == "It's 22°C and sunny right now."


def test_non_object_block_falls_back_to_text_matching() -> None:
    fact, cleaned = extract("Light drizzle expected. <weather_data>[1, 2, 3]</weather_data>")

    assert fact.verified is False
    assert fact.condition == "rain"
    assert cleaned == "Light drizzle expected."


def test_unterminated_block_is_cut_to_end_of_text() -> None:
    _, cleaned = extract('Cool evening ahead. <weather_data>{"temperature": 9')

    assert cleaned == "Cool evening ahead."


def test_stray_closing_delimiter_is_removed() -> None:
    assert strip_structured_blocks("All clear.</weather_data>") == "All clear."


def test_text_matchers_pick_up_each_field() -> None:
    fact = extract_from_text(
        "The temperature is 18 with a 40% chance of rain and a wind speed of 15 km/h."
    )

    assert fact.temperature == 18
    assert fact.precipitation == 40
    assert fact.wind == 15
    assert fact.condition == "rain"
    assert fact.visual_type == "default"
    assert fact.verified is False


def test_negative_temperatures_and_degree_words() -> None:
    assert extract_from_text("Brr, it is -3°C outside.").temperature == -3
    assert extract_from_text("Around 7 degrees this evening.").temperature == 7


def test_ranges_do_not_produce_negative_values() -> None:
    fact = extract_from_text("Expect 2-3 degrees overnight.")

    assert fact.temperature == 3


def test_condition_follows_keyword_order() -> None:
    assert extract_from_text("Partly cloudy with rain later").condition == "clouds"
    assert extract_from_text("Expect drizzle and fog").condition == "rain"
    assert extract_from_text("Thunder possible tonight").condition == "thunderstorm"
    assert extract_from_text("A dusting of sleet").condition == "snow"
    assert extract_from_text("Nothing notable to report").condition is None


def test_visual_type_from_wording() -> None:
    assert extract_from_text("Here's the forecast for the next few days.").visual_type == "forecast"
    assert extract_from_text("Compared with the historical average it is mild.").visual_type == "chart"
    assert extract_from_text("Looks fine.").visual_type == "default"


def test_empty_reply_yields_empty_fact() -> None:
    fact, cleaned = extract("")

    assert cleaned == ""
    assert fact.temperature is None
    assert fact.condition is None
    assert fact.verified is False


def test_coerce_scalar_takes_first_list_element() -> None:
    assert coerce_scalar([3, 4]) == 3
    assert coerce_scalar([]) is None
    assert coerce_scalar(5) == 5


def test_structured_condition_is_mapped_onto_known_conditions() -> None:
    sunny, _ = extract('<weather_data>{"condition": "Sunny"}</weather_data>')
    showers, _ = extract('<weather_data>{"condition": ["light showers"]}</weather_data>')
    unknown, _ = extract('<weather_data>{"condition": "volcanic ash"}</weather_data>')

    assert sunny.condition == "clear"
    assert showers.condition == "rain"
    assert unknown.condition is None
    assert unknown.verified is True
