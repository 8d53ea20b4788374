"""Compatibility scenario definitions.

Each scenario captures a storage snapshot with the current SDK and
declares the checks replayed against snapshots from older versions.
Snapshot files are associated with scenarios by name, so a scenario
name must stay stable once snapshots exist for it.
"""

from __future__ import annotations

import json
from types import MappingProxyType
from typing import Mapping

from core.constants import (
    LOCAL_STORE_DEVICE_SHARE,
    LOCAL_STORE_PRIV_KEY,
    LOCAL_STORE_SERIALIZED_SHARE,
)
from core.errors import ScenarioError, ThresholdKeyError
from harness.scenario_types import Scenario, ScenarioCheck, ScenarioContext
from sdk.curve import hex_to_scalar, scalar_to_hex
from sdk.security_questions import SECURITY_QUESTIONS_MODULE_NAME, SecurityQuestionsModule
from sdk.share_store import HEX_FORMAT, MNEMONIC_FORMAT, ShareStore
from sdk.threshold_key import ThresholdKey

SECURITY_QUESTION = "who is your cat?"
SECURITY_ANSWER = "blublu"
CHANGED_SECURITY_ANSWER = "dodo"

TKEY_CORE = "tkey-core"
SECURITY_QUESTIONS = "security-questions"
SHARE_SERIALIZATION_MNEMONIC = "share-serialization-mnemonic"
SHARE_SERIALIZATION_HEX = "share-serialization-hex"


def build_scenario_registry() -> Mapping[str, Scenario]:
    """Return the registered scenarios keyed by name."""
    scenarios = (
        Scenario(
            name=TKEY_CORE,
            description="Device share plus service-provider share reconstruction.",
            capture=capture_tkey_core,
            checks=(
                ScenarioCheck(
                    "C001", "Reconstruct with device share", check_reconstruct_device_share
                ),
                ScenarioCheck("C002", "Generate and delete shares", check_generate_and_delete),
                ScenarioCheck("C003", "Deleted share is rejected", check_deleted_share_rejected),
                ScenarioCheck("C004", "Reshare via service provider", check_reshare),
                ScenarioCheck("C005", "Reshare and serialize", check_reshare_serialization),
                ScenarioCheck("C006", "Reconstruct with old metadata", check_old_metadata),
                ScenarioCheck("C007", "Add security questions", check_add_security_questions),
                ScenarioCheck(
                    "C008",
                    "Security questions after new share",
                    check_security_questions_after_new_share,
                ),
                ScenarioCheck("C009", "Device share survives refresh", check_device_share_refresh),
            ),
        ),
        Scenario(
            name=SECURITY_QUESTIONS,
            description="Share protected by a security question and answer.",
            capture=capture_security_questions,
            checks=(
                ScenarioCheck("S001", "Reconstruct with answer", check_answer_reconstruct),
                ScenarioCheck("S002", "Change password", check_change_password),
                ScenarioCheck(
                    "S003", "Change password and serialize", check_change_password_serialization
                ),
                ScenarioCheck("S004", "Wrong answer is rejected", check_wrong_answer_rejected),
            ),
        ),
        Scenario(
            name=SHARE_SERIALIZATION_MNEMONIC,
            description="Device share exported as a BIP-39 mnemonic.",
            capture=capture_mnemonic_share,
            checks=(
                ScenarioCheck("M001", "Accept mnemonic share", check_mnemonic_share),
            ),
        ),
        Scenario(
            name=SHARE_SERIALIZATION_HEX,
            description="Device share exported as hex.",
            capture=capture_hex_share,
            checks=(
                ScenarioCheck("H001", "Accept hex share", check_hex_share),
            ),
        ),
    )
    return MappingProxyType({scenario.name: scenario for scenario in scenarios})


def capture_tkey_core(context: ScenarioContext) -> str:
    tb = context.new_key()
    key_details = tb.initialize_new_key()
    tb2 = context.new_key()
    tb2.initialize()
    tb2.input_share_store(key_details.device_share)
    context.local_store[LOCAL_STORE_DEVICE_SHARE] = key_details.device_share.to_json()
    context.local_store[LOCAL_STORE_PRIV_KEY] = scalar_to_hex(key_details.priv_key)
    reconstructed = tb2.reconstruct_key()
    _expect_same_key(reconstructed.priv_key, key_details.priv_key, "key should be reconstructed")
    return f"share_count={len(key_details.share_indexes)}"


def capture_security_questions(context: ScenarioContext) -> str:
    tb = _key_with_questions(context)
    key_details = tb.initialize_new_key()
    _questions(tb).generate_new_share_with_security_questions(SECURITY_ANSWER, SECURITY_QUESTION)
    tb2 = _key_with_questions(context)
    tb2.initialize()
    _questions(tb2).input_share_from_security_questions(SECURITY_ANSWER)
    context.local_store[LOCAL_STORE_PRIV_KEY] = scalar_to_hex(key_details.priv_key)
    reconstructed = tb2.reconstruct_key()
    _expect_same_key(reconstructed.priv_key, key_details.priv_key, "key should be reconstructed")
    return f"share_count={len(tb2.current_share_indexes())}"


def capture_mnemonic_share(context: ScenarioContext) -> str:
    return _capture_serialized_share(context, MNEMONIC_FORMAT)


def capture_hex_share(context: ScenarioContext) -> str:
    return _capture_serialized_share(context, HEX_FORMAT)


def _capture_serialized_share(context: ScenarioContext, share_format: str) -> str:
    tb = context.new_key()
    key_details = tb.initialize_new_key()
    exported = tb.output_share(key_details.device_share.share_index, share_format)
    context.local_store[LOCAL_STORE_SERIALIZED_SHARE] = exported
    context.local_store[LOCAL_STORE_PRIV_KEY] = scalar_to_hex(key_details.priv_key)
    tb2 = context.new_key()
    tb2.initialize()
    tb2.input_share(exported, share_format)
    reconstructed = tb2.reconstruct_key()
    _expect_same_key(reconstructed.priv_key, key_details.priv_key, "key should be reconstructed")
    return f"format={share_format}"


def check_reconstruct_device_share(context: ScenarioContext) -> str:
    """Reconstruct from the snapshot's device share and recorded secret."""
    tb = _reconstructed_core_key(context)
    return f"share_indexes={len(tb.current_share_indexes())}"


def check_generate_and_delete(context: ScenarioContext) -> str:
    """Generate a share, reconstruct with it elsewhere, then delete it."""
    tb = _reconstructed_core_key(context)
    generated = tb.generate_new_share()
    new_index_hex = scalar_to_hex(generated.new_share_index)
    tb2 = context.new_key()
    tb2.initialize()
    tb2.input_share_store(generated.new_share_stores[new_index_hex])
    reconstructed = tb2.reconstruct_key()
    _expect_recorded_key(context, reconstructed.priv_key)
    deleted = tb2.delete_share(generated.new_share_index)
    if new_index_hex in deleted.new_share_stores:
        raise ScenarioError(f"Unable to delete share index {new_index_hex}.")
    if generated.new_share_index in tb2.current_share_indexes():
        raise ScenarioError(f"Share index {new_index_hex} still listed after deletion.")
    return f"deleted={new_index_hex}"


def check_deleted_share_rejected(context: ScenarioContext) -> str:
    """A deleted share's raw value must not be accepted again."""
    tb = _reconstructed_core_key(context)
    generated = tb.generate_new_share()
    deleted_store = generated.new_share_stores[scalar_to_hex(generated.new_share_index)]
    tb.delete_share(generated.new_share_index)
    tb2 = context.new_key()
    tb2.initialize()
    try:
        tb2.input_share(format(deleted_store.share, "x"), HEX_FORMAT)
    except ThresholdKeyError:
        return "deleted share rejected"
    raise ScenarioError("Deleted share was accepted after deletion.")


def check_reshare(context: ScenarioContext) -> str:
    """A share generated by a second handle reconstructs on a third."""
    tb = _reconstructed_core_key(context)
    expected = tb.reconstruct_key().priv_key
    tb2 = context.new_key()
    tb2.initialize()
    tb2.input_share_store(_device_share(context))
    _expect_same_key(tb2.reconstruct_key().priv_key, expected, "key should be reconstructed")
    generated = tb2.generate_new_share()
    tb3 = context.new_key()
    tb3.initialize()
    tb3.input_share_store(generated.new_share_stores[scalar_to_hex(generated.new_share_index)])
    final_key = tb3.reconstruct_key()
    _expect_same_key(
        final_key.priv_key, expected, "key should be reconstructed after adding new share"
    )
    return f"new_share_index={scalar_to_hex(generated.new_share_index)}"


def check_reshare_serialization(context: ScenarioContext) -> str:
    """An SDK handle survives a JSON round trip after resharing."""
    check_reshare(context)
    tb3 = context.new_key()
    tb3.initialize()
    tb3.input_share_store(_device_share(context))
    final_key = tb3.reconstruct_key()
    stringified = json.dumps(tb3.to_json())
    tb4 = ThresholdKey.from_json(json.loads(stringified), context.service_provider, context.store)
    post_serialization = tb4.reconstruct_key()
    _expect_same_key(post_serialization.priv_key, final_key.priv_key, "Incorrect serialization")
    return "serialization round trip matched"


def check_old_metadata(context: ScenarioContext) -> str:
    """A handle holding stale metadata still reconstructs."""
    tb = _reconstructed_core_key(context)
    tb2 = context.new_key()
    tb2.initialize()
    tb.generate_new_share()
    tb2.input_share_store(_device_share(context))
    reconstructed = tb2.reconstruct_key()
    _expect_recorded_key(context, reconstructed.priv_key)
    _expect_same_key(reconstructed.priv_key, tb.reconstruct_key().priv_key, "key mismatch")
    return "stale metadata reconstructed"


def check_add_security_questions(context: ScenarioContext) -> str:
    """Add a security-question share to a loaded key and use it."""
    tb = _key_with_questions(context)
    tb.initialize()
    tb.input_share_store(_device_share(context))
    expected = tb.reconstruct_key().priv_key
    _expect_recorded_key(context, expected)
    _questions(tb).generate_new_share_with_security_questions(SECURITY_ANSWER, SECURITY_QUESTION)
    tb2 = _key_with_questions(context)
    tb2.initialize()
    _questions(tb2).input_share_from_security_questions(SECURITY_ANSWER)
    _expect_same_key(tb2.reconstruct_key().priv_key, expected, "key should be reconstructed")
    return "security question share reconstructed"


def check_security_questions_after_new_share(context: ScenarioContext) -> str:
    """Question shares keep working after another share is generated."""
    tb = _key_with_questions(context)
    tb.initialize()
    tb.input_share_store(_device_share(context))
    expected = tb.reconstruct_key().priv_key
    _expect_recorded_key(context, expected)
    _questions(tb).generate_new_share_with_security_questions(SECURITY_ANSWER, SECURITY_QUESTION)
    tb2 = _key_with_questions(context)
    tb.generate_new_share()
    tb2.initialize()
    _questions(tb2).input_share_from_security_questions(SECURITY_ANSWER)
    _expect_same_key(tb2.reconstruct_key().priv_key, expected, "key should be reconstructed")
    return "security question share survived new share"


def check_device_share_refresh(context: ScenarioContext) -> str:
    """An outdated device share follows the refresh chain after a deletion."""
    tb = _reconstructed_core_key(context)
    generated = tb.generate_new_share()
    tb.delete_share(generated.new_share_index)
    tb2 = context.new_key()
    tb2.initialize()
    tb2.input_share_store(_device_share(context))
    reconstructed = tb2.reconstruct_key()
    _expect_recorded_key(context, reconstructed.priv_key)
    return "device share followed refresh"


def check_answer_reconstruct(context: ScenarioContext) -> str:
    tb = _key_with_questions(context)
    tb.initialize()
    _questions(tb).input_share_from_security_questions(SECURITY_ANSWER)
    _expect_recorded_key(context, tb.reconstruct_key().priv_key)
    return "answer reconstructed key"


def check_change_password(context: ScenarioContext) -> str:
    """Change the answer, then reconstruct on a fresh handle with it."""
    _change_password_and_reconstruct(context)
    return f"answer changed to {CHANGED_SECURITY_ANSWER!r}"


def check_change_password_serialization(context: ScenarioContext) -> str:
    """Change the answer, then round-trip the handle through JSON."""
    tb2, reconstructed = _change_password_and_reconstruct(context)
    stringified = json.dumps(tb2.to_json())
    tb4 = ThresholdKey.from_json(json.loads(stringified), context.service_provider, context.store)
    post_serialization = tb4.reconstruct_key()
    _expect_same_key(post_serialization.priv_key, reconstructed, "Incorrect serialization")
    return "serialization round trip matched"


def check_wrong_answer_rejected(context: ScenarioContext) -> str:
    tb = _key_with_questions(context)
    tb.initialize()
    try:
        _questions(tb).input_share_from_security_questions(SECURITY_ANSWER + "-wrong")
    except ThresholdKeyError:
        _questions(tb).input_share_from_security_questions(SECURITY_ANSWER)
        _expect_recorded_key(context, tb.reconstruct_key().priv_key)
        return "wrong answer rejected"
    raise ScenarioError("Wrong security answer was accepted.")


def check_mnemonic_share(context: ScenarioContext) -> str:
    """Accept a mnemonic exported by an older SDK and reconstruct."""
    return _check_serialized_share(context, MNEMONIC_FORMAT)


def check_hex_share(context: ScenarioContext) -> str:
    return _check_serialized_share(context, HEX_FORMAT)


def _check_serialized_share(context: ScenarioContext, share_format: str) -> str:
    serialized = context.local_store.get(LOCAL_STORE_SERIALIZED_SHARE)
    if not isinstance(serialized, str):
        raise ScenarioError(
            f"Snapshot local store lacks '{LOCAL_STORE_SERIALIZED_SHARE}'."
        )
    tb = context.new_key()
    tb.initialize()
    tb.input_share(serialized, share_format)
    _expect_recorded_key(context, tb.reconstruct_key().priv_key)
    return f"{share_format} share accepted"


def _change_password_and_reconstruct(context: ScenarioContext) -> tuple[ThresholdKey, int]:
    tb = _key_with_questions(context)
    tb.initialize()
    _questions(tb).input_share_from_security_questions(SECURITY_ANSWER)
    expected = tb.reconstruct_key().priv_key
    _questions(tb).change_security_question_and_answer(CHANGED_SECURITY_ANSWER, SECURITY_QUESTION)
    tb2 = _key_with_questions(context)
    tb2.initialize()
    _questions(tb2).input_share_from_security_questions(CHANGED_SECURITY_ANSWER)
    reconstructed = tb2.reconstruct_key().priv_key
    _expect_same_key(reconstructed, expected, "key should be reconstructed")
    _expect_recorded_key(context, reconstructed)
    return tb2, reconstructed


def _reconstructed_core_key(context: ScenarioContext) -> ThresholdKey:
    tb = context.new_key()
    tb.initialize()
    tb.input_share_store(_device_share(context))
    try:
        reconstructed = tb.reconstruct_key()
    except ThresholdKeyError as error:
        raise ScenarioError(f"key should be able to be reconstructed: {error}") from error
    _expect_recorded_key(context, reconstructed.priv_key)
    return tb


def _key_with_questions(context: ScenarioContext) -> ThresholdKey:
    return context.new_key({SECURITY_QUESTIONS_MODULE_NAME: SecurityQuestionsModule()})


def _questions(tb: ThresholdKey) -> SecurityQuestionsModule:
    module = tb.modules.get(SECURITY_QUESTIONS_MODULE_NAME)
    if not isinstance(module, SecurityQuestionsModule):
        raise ScenarioError(
            f"Handle lacks the '{SECURITY_QUESTIONS_MODULE_NAME}' module; "
            "build it with the security questions module attached."
        )
    return module


def _device_share(context: ScenarioContext) -> ShareStore:
    payload = context.local_store.get(LOCAL_STORE_DEVICE_SHARE)
    if not isinstance(payload, dict):
        raise ScenarioError(f"Snapshot local store lacks '{LOCAL_STORE_DEVICE_SHARE}'.")
    return ShareStore.from_json(payload)


def _expect_recorded_key(context: ScenarioContext, actual: int) -> None:
    recorded = context.local_store.get(LOCAL_STORE_PRIV_KEY)
    if recorded is None:
        return
    expected = hex_to_scalar(str(recorded))
    _expect_same_key(actual, expected, "reconstructed key differs from snapshot")


def _expect_same_key(actual: int, expected: int, message: str) -> None:
    if actual != expected:
        raise ScenarioError(message)
