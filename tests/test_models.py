from voicestudio.models import DEFAULT_MODELS, Provider, TranscriptionOptions, TranscriptionResult


def test_default_model_follows_provider():
    assert TranscriptionOptions().model == "whisper-1"
    assert TranscriptionOptions(provider="deepgram").model == "nova-3"


def test_changing_provider_resets_model():
    options = TranscriptionOptions(provider=Provider.OPENAI, model="custom-whisper")
    switched = options.with_provider("gemini")

    assert switched.provider is Provider.GEMINI
    assert switched.model == DEFAULT_MODELS[Provider.GEMINI]
    assert options.model == "custom-whisper"


def test_custom_topics_are_unique():
    options = TranscriptionOptions().add_topic(" budget ").add_topic("budget").add_topic("")
    assert options.custom_topics == ["budget"]
    assert options.remove_topic("budget").custom_topics == []


def test_preset_topics_merge_without_duplicates():
    options = TranscriptionOptions(custom_topics=["client"]).add_preset_topics("business")
    assert options.custom_topics[0] == "client"
    assert options.custom_topics.count("client") == 1
    assert "revenue" in options.custom_topics
    assert TranscriptionOptions().add_preset_topics("unknown").custom_topics == []


def test_from_payload_accepts_browser_keys():
    options = TranscriptionOptions.from_payload(
        {
            "provider": "deepgram",
            "model": "",
            "detectLanguage": True,
            "customTopicMode": "strict",
            "customTopics": ["law"],
            "speakerLabels": False,
            "ignored": 1,
        }
    )
    assert options.provider is Provider.DEEPGRAM
    assert options.model == "nova-3"
    assert options.detect_language is True
    assert options.custom_topic_mode == "strict"
    assert options.custom_topics == ["law"]
    assert options.speaker_labels is False


def test_unknown_provider_or_topic_mode_rejected():
    for kwargs in ({"provider": "azure"}, {"custom_topic_mode": "loose"}):
        try:
            TranscriptionOptions(**kwargs)
        except ValueError:
            pass
        else:
            raise AssertionError(f"Expected ValueError for {kwargs}")


def test_empty_result_to_dict():
    data = TranscriptionResult.empty(raw={"x": 1}).to_dict()
    assert data["text"] == ""
    assert data["speakers"] == ()
    assert data["sentiment"] is None
    assert data["raw"] == {"x": 1}
