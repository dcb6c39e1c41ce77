from swapi_aggregator import analysis


def _counts(result):
    return {wc.word: wc.count for wc in result.word_counts}


def test_luke_and_vader_tie_and_leia_is_excluded():
    result = analysis.analyze(
        ["Luke faces Vader. Vader is Luke's father."], {"Luke", "Vader", "Leia"}
    )

    counts = _counts(result)
    assert counts["vader"] == 2
    assert counts["luke"] == 2
    assert counts["s"] == 1  # "luke's" splits on the apostrophe
    assert set(result.top_mentioned) == {"Luke", "Vader"}


def test_mention_tally_drops_zero_counts():
    corpus = "luke faces vader. vader is luke's father."
    assert analysis.mention_tally(corpus, ["Luke", "Vader", "Leia"]) == {
        "Luke": 2,
        "Vader": 2,
    }


def test_empty_tally_gives_no_top_mentioned():
    result = analysis.analyze(["It is a period of civil war."], ["Yoda", "Chewbacca"])
    assert result.top_mentioned == []
    assert _counts(result)["civil"] == 1


def test_no_texts_and_no_names():
    result = analysis.analyze([], [])
    assert result.word_counts == []
    assert result.top_mentioned == []


def test_word_counts_are_unique_and_case_folded():
    result = analysis.analyze(["The Empire", "the EMPIRE strikes"], [])
    counts = _counts(result)
    assert len(counts) == len(result.word_counts)
    assert counts == {"the": 2, "empire": 2, "strikes": 1}


def test_mentions_are_whole_word_only():
    # "Han" must not match inside "handful" or "Hannah"
    tally = analysis.mention_tally(
        "a handful of rebels. hannah met han. han solo.", ["Han", "Han Solo"]
    )
    assert tally == {"Han": 2, "Han Solo": 1}


def test_names_with_regex_characters_are_escaped():
    tally = analysis.mention_tally("r2-d2 and c-3po (again) r2-d2", ["R2-D2", "C-3PO", "("])
    assert tally == {"R2-D2": 2, "C-3PO": 1}


def test_single_winner_and_texts_joined_with_space():
    result = analysis.analyze(["Leia", "Leia Luke"], ["Luke", "Leia"])
    assert result.top_mentioned == ["Leia"]
    # joining must not glue "Leia" + "Leia" into one token
    assert _counts(result)["leia"] == 2
