from __future__ import annotations

import zlib

import brotli
import pytest

from common import codec as codec_mod
from common.codec import (
    DEFAULT_PREFERENCE,
    TAG_BROTLI,
    TAG_DEFLATE,
    TAG_LEGACY,
    TAG_PLAIN,
    VARIANTS,
    TokenCodec,
    TokenVariant,
)
from common.errors import (
    CorruptPayload,
    DecodeError,
    MalformedPayload,
    TruncatedPayload,
    UnsupportedVersion,
)
from state.models import Snapshot


ALL_TAGS = [TAG_BROTLI, TAG_DEFLATE, TAG_PLAIN, TAG_LEGACY]

# Produced by the browser prototype: btoa(unescape(encodeURIComponent(JSON.stringify(state))))
JS_LEGACY_TOKEN = (
    "SINS1.eyJwMV9vcmlnaW5hbCI6IkJpcmRzIGxlZnQgZWFybHkiLCJwMV9yZXZpc2VkIjoiIiwicDJfb3JpZ2luYWwiOiJSYWluZmFs"
    "bCBkYXRhIiwiYnJhbmNoX2Nob2ljZSI6IndlYXRoZXIiLCJjdXJyZW50U3RlcCI6InN0ZXAzIn0="
)


def _scenario_a() -> Snapshot:
    return Snapshot.model_validate(
        {
            "p1_original": "",
            "p1_revised": "",
            "p2_original": "",
            "branch_choice": "weather",
            "currentStep": "step3",
        }
    )


def _unicode_snapshot() -> Snapshot:
    return Snapshot.model_validate(
        {
            "p1_original": "Les oiseaux sont partis tôt — 鳥が早く去った 🐦\n\"quoted\" \\ tab\t",
            "p1_revised": "",
            "p2_original": "Niederschlag ≥ 30 mm",
            "branch_choice": "habitat",
            "currentStep": "step2",
        }
    )


@pytest.mark.parametrize("tag", ALL_TAGS)
def test_scenario_a_round_trips_under_every_tag(tag):
    codec = TokenCodec()
    snap = _scenario_a()

    token = codec.encode(snap, tag=tag)
    assert token.startswith(f"{tag}.")
    assert codec.decode(token) == snap


@pytest.mark.parametrize("tag", ALL_TAGS)
def test_unicode_text_round_trips_exactly(tag):
    codec = TokenCodec()
    snap = _unicode_snapshot()

    decoded = codec.decode(codec.encode(snap, tag=tag))
    assert decoded == snap
    assert decoded.p1_original == snap.p1_original


@pytest.mark.parametrize("tag", [TAG_BROTLI, TAG_DEFLATE, TAG_PLAIN])
def test_current_tags_use_url_safe_alphabet(tag):
    token = TokenCodec().encode(_unicode_snapshot(), tag=tag)
    payload = token.split(".", 1)[1]
    assert payload
    assert all(c.isascii() and (c.isalnum() or c in "-_") for c in payload)


def test_default_encode_uses_first_preference():
    token = TokenCodec().encode(_scenario_a())
    assert token.startswith(f"{DEFAULT_PREFERENCE[0]}.")


def test_preference_order_is_respected():
    codec = TokenCodec([TAG_DEFLATE])
    assert codec.preferred == (TAG_DEFLATE, TAG_PLAIN)
    assert codec.encode(_scenario_a()).startswith(f"{TAG_DEFLATE}.")


def test_unknown_preferred_tag_is_rejected():
    with pytest.raises(ValueError):
        TokenCodec(["v9-nope"])


def test_encode_with_unknown_tag_is_rejected():
    with pytest.raises(ValueError):
        TokenCodec().encode(_scenario_a(), tag="v9-nope")


def test_encode_falls_back_when_compressor_fails():
    def broken(_data: bytes) -> bytes:
        raise zlib.error("no compressor here")

    variants = dict(VARIANTS)
    variants[TAG_DEFLATE] = codec_mod._variant(TAG_DEFLATE, broken, codec_mod._inflate)
    codec = TokenCodec([TAG_DEFLATE, TAG_PLAIN], variants=variants)

    token = codec.encode(_scenario_a())
    assert token.startswith(f"{TAG_PLAIN}.")
    assert codec.decode(token) == _scenario_a()


def test_each_tag_maps_to_one_pipeline():
    assert set(VARIANTS) == set(ALL_TAGS)
    for tag, variant in VARIANTS.items():
        assert isinstance(variant, TokenVariant)
        assert variant.tag == tag
    assert VARIANTS[TAG_BROTLI].compressed and VARIANTS[TAG_DEFLATE].compressed
    assert not VARIANTS[TAG_PLAIN].compressed and not VARIANTS[TAG_LEGACY].compressed


@pytest.mark.parametrize("tag,compressed", [(TAG_DEFLATE, True), (TAG_PLAIN, False)])
def test_encode_logs_whether_pipeline_compresses(caplog, tag, compressed):
    caplog.set_level("DEBUG", logger="common.codec")
    TokenCodec([tag]).encode(_scenario_a())

    assert f"Encoded snapshot with {tag} (compressed={compressed}," in caplog.text


def test_compressed_token_is_decoded_only_by_its_own_pipeline():
    codec = TokenCodec()
    deflated = codec.encode(_scenario_a(), tag=TAG_DEFLATE)
    payload = deflated.split(".", 1)[1]

    # Same payload under the plain tag is not silently accepted
    with pytest.raises(DecodeError):
        codec.decode(f"{TAG_PLAIN}.{payload}")


@pytest.mark.parametrize("tag", ALL_TAGS)
def test_truncated_tokens_never_decode(tag):
    codec = TokenCodec()
    token = codec.encode(_unicode_snapshot(), tag=tag)

    # Includes cuts through the separator and into the tag itself
    for cut in range(1, len(token)):
        with pytest.raises((TruncatedPayload, MalformedPayload)):
            codec.decode(token[:-cut])


@pytest.mark.parametrize("text", [TAG_PLAIN, "v2-", "v", "SIN"])
def test_token_cut_inside_its_tag_is_truncated(text):
    with pytest.raises(TruncatedPayload):
        TokenCodec().decode(text)


def _bomb_token(tag: str, packed: bytes) -> str:
    return f"{tag}.{codec_mod._b64url_encode(packed)}"


def test_brotli_payload_expanding_past_the_limit_is_malformed():
    packed = brotli.compress(b"a" * (8 * codec_mod.MAX_TEXT_BYTES), quality=5)

    with pytest.raises(MalformedPayload, match="size limit"):
        TokenCodec().decode(_bomb_token(TAG_BROTLI, packed))


def test_deflate_payload_expanding_past_the_limit_is_malformed():
    packed = zlib.compress(b"a" * (8 * codec_mod.MAX_TEXT_BYTES), 9)

    with pytest.raises(MalformedPayload, match="size limit"):
        TokenCodec().decode(_bomb_token(TAG_DEFLATE, packed))


def test_brotli_output_is_capped_while_decompressing(monkeypatch):
    monkeypatch.setattr(codec_mod, "MAX_TEXT_BYTES", 64)
    snap = Snapshot.from_mapping({"p1_original": "x" * 500})
    token = TokenCodec().encode(snap, tag=TAG_BROTLI)

    with pytest.raises(MalformedPayload, match="size limit"):
        TokenCodec().decode(token)


@pytest.mark.parametrize(
    "token",
    ["", "   ", "garbage", "nodothere", "v9-future.abc", "sins1.eyJ9", ".eyJ9"],
)
def test_unknown_or_missing_tag_is_unsupported_version(token):
    with pytest.raises(UnsupportedVersion):
        TokenCodec().decode(token)


@pytest.mark.parametrize(
    "token",
    [
        f"{TAG_PLAIN}.abc$def",
        f"{TAG_PLAIN}.abc+def/",
        f"{TAG_PLAIN}.abcde",  # impossible base64 length
        f"{TAG_DEFLATE}.AAAAAA",  # not a zlib stream
        f"{TAG_LEGACY}.ab-_",
    ],
)
def test_bad_alphabet_or_structure_is_malformed(token):
    with pytest.raises(MalformedPayload):
        TokenCodec().decode(token)


def test_json_syntax_error_in_the_middle_is_malformed():
    # {"a" 1}
    with pytest.raises(MalformedPayload):
        TokenCodec().decode(f"{TAG_PLAIN}.eyJhIiAxfQ")


@pytest.mark.parametrize(
    "payload",
    [
        "WzEsMl0",  # [1,2]
        "Imp1c3QgdGV4dCI",  # "just text"
    ],
)
def test_non_object_json_is_corrupt(payload):
    with pytest.raises(CorruptPayload):
        TokenCodec().decode(f"{TAG_PLAIN}.{payload}")


def test_empty_payload_is_truncated():
    with pytest.raises(TruncatedPayload):
        TokenCodec().decode(f"{TAG_PLAIN}.")


def test_decodes_token_from_browser_prototype():
    snap = TokenCodec().decode(JS_LEGACY_TOKEN)
    assert snap.p1_original == "Birds left early"
    assert snap.p1_revised == ""
    assert snap.p2_original == "Rainfall data"
    assert snap.branch_choice == "weather"
    assert snap.current_step == "step3"


def test_decode_drops_unknown_and_non_string_fields():
    # {"p1_original":"café 🐦","currentStep":"step2","extra":"x","branch_choice":7}
    token = (
        "SINS1.eyJwMV9vcmlnaW5hbCI6ImNhZsOpIPCfkKYiLCJjdXJyZW50U3RlcCI6InN0ZXAyIiwiZXh0cmEiOiJ4IiwiYnJhbmNo"
        "X2Nob2ljZSI6N30="
    )
    snap = TokenCodec().decode(token)
    assert snap.to_mapping() == {"p1_original": "café 🐦", "currentStep": "step2"}
    assert snap.branch_choice is None
    assert not snap.is_complete()


def test_decode_ignores_surrounding_whitespace():
    codec = TokenCodec()
    token = codec.encode(_scenario_a())
    assert codec.decode(f"  {token}\n") == _scenario_a()


def test_partial_snapshot_round_trips_as_partial():
    codec = TokenCodec()
    partial = Snapshot.from_mapping({"p2_original": "only this"})

    decoded = codec.decode(codec.encode(partial, tag=TAG_PLAIN))
    assert decoded == partial
    assert decoded.to_mapping() == {"p2_original": "only this"}
