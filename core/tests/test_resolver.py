"""Tests for input resolution from upstream neighbours."""

from mediagraph.graph.models import NodeType, Position
from mediagraph.graph.resolver import InputResolver, effective_input
from mediagraph.graph.store import GraphStore


def add(store: GraphStore, node_type: str, **data) -> str:
    return store.add_node(node_type, Position(), data=data)


def test_images_accumulate_in_edge_order():
    store = GraphStore()
    first = add(store, NodeType.IMAGE_INPUT, image="img-1")
    second = add(store, NodeType.NANO_BANANA, outputImage="img-2")
    target = add(store, NodeType.NANO_BANANA)
    store.connect(second, target, "image", "image")
    store.connect(first, target, "image", "image")

    resolved = InputResolver(store).resolve(target)

    assert resolved.images == ["img-2", "img-1"]
    assert resolved.image == "img-2"


def test_missing_target_handle_counts_as_image():
    store = GraphStore()
    source = add(store, NodeType.ANNOTATION, outputImage="annotated")
    target = add(store, NodeType.OUTPUT)
    store.connect(source, target)

    assert InputResolver(store).resolve(target).images == ["annotated"]


def test_llm_output_images_are_spread():
    store = GraphStore()
    llm = add(store, NodeType.LLM_GENERATE, outputImages=["a", "b"])
    target = add(store, NodeType.NANO_BANANA)
    store.connect(llm, target, "image", "image")

    assert InputResolver(store).resolve(target).images == ["a", "b"]


def test_video_generate_passes_last_frame_as_image():
    store = GraphStore()
    video = add(store, NodeType.VIDEO_GENERATE, outputVideo="clip", lastFrame="frame")
    target = add(store, NodeType.VIDEO_GENERATE)
    store.connect(video, target, "image", "image")

    assert InputResolver(store).resolve(target).images == ["frame"]


def test_empty_image_values_are_skipped():
    store = GraphStore()
    empty = add(store, NodeType.IMAGE_INPUT, image=None)
    target = add(store, NodeType.OUTPUT)
    store.connect(empty, target, None, "image")

    assert InputResolver(store).resolve(target).images == []


def test_last_text_edge_wins():
    store = GraphStore()
    first = add(store, NodeType.PROMPT, prompt="first")
    second = add(store, NodeType.LLM_GENERATE, outputText="second")
    target = add(store, NodeType.NANO_BANANA)
    store.connect(first, target, "text", "text")
    store.connect(second, target, "text", "text")

    assert InputResolver(store).resolve(target).text == "second"


def test_source_without_text_keeps_earlier_text():
    store = GraphStore()
    prompt = add(store, NodeType.PROMPT, prompt="P")
    image = add(store, NodeType.IMAGE_INPUT, image="img")
    target = add(store, NodeType.NANO_BANANA)
    store.connect(prompt, target, "text", "text")
    store.connect(image, target, "image", "text")
    store.connect(image, target, "image", "context")

    resolved = InputResolver(store).resolve(target)

    assert resolved.text == "P"
    assert resolved.context is None


def test_unrelated_sources_keep_earlier_video_and_audio():
    store = GraphStore()
    video = add(store, NodeType.VIDEO_INPUT, video="uploaded")
    voice = add(store, NodeType.ELEVEN_LABS, outputAudio="speech")
    prompt = add(store, NodeType.PROMPT, prompt="not media")
    composer = add(store, NodeType.VIDEO_COMPOSER)
    store.connect(video, composer, "video", "video")
    store.connect(voice, composer, "audio", "audio")
    store.connect(prompt, composer, "text", "video")
    store.connect(prompt, composer, "text", "audio")

    resolved = InputResolver(store).resolve(composer)

    assert resolved.video == "uploaded"
    assert resolved.videos == ["uploaded"]
    assert resolved.audio == "speech"


def test_context_is_separate_from_text():
    store = GraphStore()
    instruction = add(store, NodeType.PROMPT, prompt="summarize")
    content = add(store, NodeType.PROMPT, prompt="long article")
    llm = add(store, NodeType.LLM_GENERATE)
    store.connect(instruction, llm, "text", "text")
    store.connect(content, llm, "text", "context")

    resolved = InputResolver(store).resolve(llm)

    assert resolved.text == "summarize"
    assert resolved.context == "long article"


def test_chunker_uses_consumer_chunk_index():
    store = GraphStore()
    chunker = add(store, NodeType.SYLLABLE_CHUNKER, outputChunks=["c1", "c2", "c3"], selectedChunkIndex=0)
    voice = add(store, NodeType.ELEVEN_LABS, chunkIndex=2)
    store.connect(chunker, voice, "text", "text")

    assert InputResolver(store).resolve(voice).text == "c2"


def test_chunker_falls_back_to_selected_chunk():
    store = GraphStore()
    chunker = add(store, NodeType.SYLLABLE_CHUNKER, outputChunks=["c1", "c2"], selectedChunkIndex=1)
    voice = add(store, NodeType.ELEVEN_LABS)
    store.connect(chunker, voice, "text", "text")

    assert InputResolver(store).resolve(voice).text == "c2"


def test_chunk_index_out_of_range_is_none():
    store = GraphStore()
    chunker = add(store, NodeType.SYLLABLE_CHUNKER, outputChunks=["c1"])
    voice = add(store, NodeType.ELEVEN_LABS, chunkIndex=5)
    store.connect(chunker, voice, "text", "text")

    assert InputResolver(store).resolve(voice).text is None


def test_video_and_audio_handles():
    store = GraphStore()
    video = add(store, NodeType.VIDEO_INPUT, video="uploaded")
    voice = add(store, NodeType.ELEVEN_LABS, outputAudio="speech")
    composer = add(store, NodeType.VIDEO_COMPOSER)
    store.connect(video, composer, "video", "video")
    store.connect(voice, composer, "audio", "audio")

    resolved = InputResolver(store).resolve(composer)

    assert resolved.video == "uploaded"
    assert resolved.videos == ["uploaded"]
    assert resolved.audio == "speech"


def test_handle_filter():
    store = GraphStore()
    image = add(store, NodeType.IMAGE_INPUT, image="img")
    prompt = add(store, NodeType.PROMPT, prompt="words")
    target = add(store, NodeType.NANO_BANANA)
    store.connect(image, target, "image", "image")
    store.connect(prompt, target, "text", "text")

    resolved = InputResolver(store).resolve(target, "text")

    assert resolved.text == "words"
    assert resolved.images == []


def test_reference_chain_forwards_upstream_references():
    store = GraphStore()
    ref_a = add(store, NodeType.IMAGE_INPUT, image="ref-a")
    ref_b = add(store, NodeType.IMAGE_INPUT, image="ref-b")
    first = add(store, NodeType.VIDEO_GENERATE, lastFrame="first-frame")
    second = add(store, NodeType.VIDEO_GENERATE)
    store.connect(ref_a, first, "image", "reference")
    store.connect(ref_b, first, "image", "reference")
    store.connect(first, second, "reference", "reference")

    assert InputResolver(store).resolve(second).reference_images == ["ref-a", "ref-b"]


def test_reference_from_plain_output_is_an_image():
    store = GraphStore()
    clip = add(store, NodeType.VIDEO_GENERATE, lastFrame="frame")
    target = add(store, NodeType.VIDEO_GENERATE)
    store.connect(clip, target, "image", "reference")

    assert InputResolver(store).resolve(target).reference_images == ["frame"]


def test_reference_loop_terminates():
    store = GraphStore()
    a = add(store, NodeType.VIDEO_GENERATE)
    b = add(store, NodeType.VIDEO_GENERATE)
    store.connect(a, b, "reference", "reference")
    store.connect(b, a, "reference", "reference")

    assert InputResolver(store).resolve(b).reference_images == []


def test_effective_input_prefers_connected():
    assert effective_input("fresh", "stored") == "fresh"
    assert effective_input(None, "stored") == "stored"
    assert effective_input([], ["stored"]) == ["stored"]
    assert effective_input(["fresh"], ["stored"]) == ["fresh"]
    assert effective_input("", "stored") == ""
