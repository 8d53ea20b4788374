"""Security-question shares.

A share is protected by storing ``share - H(question || answer)`` in the
metadata general store; the answer alone recovers the share.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any

from core.errors import ThresholdKeyError
from core.logging_config import get_logger
from sdk.curve import CURVE_ORDER, hex_to_scalar, scalar_to_hex
from sdk.key_types import GenerateShareResult

if TYPE_CHECKING:
    from sdk.threshold_key import ThresholdKey

_LOGGER = get_logger(__name__)

SECURITY_QUESTIONS_MODULE_NAME = "securityQuestions"


class SecurityQuestionsModule:
    """Derives one share from a question and its answer."""

    module_name = SECURITY_QUESTIONS_MODULE_NAME

    def __init__(self) -> None:
        self._tkey: ThresholdKey | None = None

    def set_module_reference(self, tkey: "ThresholdKey") -> None:
        self._tkey = tkey

    def generate_new_share_with_security_questions(
        self, answer: str, question: str
    ) -> GenerateShareResult:
        """Issue a new share and protect it with a question and answer.

        Args:
            answer: Secret answer.
            question: Question shown to the user.

        Returns:
            Share stores including the new question-protected share.

        Raises:
            ThresholdKeyError: If questions are already set on this key.
        """
        tkey = self._require_tkey()
        if tkey.get_general_store(self.module_name):
            raise ThresholdKeyError(
                "Security questions already exist for this key. "
                "Use change_security_question_and_answer() instead."
            )
        result = tkey.generate_new_share()
        share = tkey.share_at(result.new_share_index)
        tkey.set_general_store(
            self.module_name,
            _question_store(question, answer, result.new_share_index, share),
        )
        _LOGGER.info(
            "security_question_share_created",
            share_index=scalar_to_hex(result.new_share_index),
        )
        return result

    def input_share_from_security_questions(self, answer: str) -> int:
        """Recover the question-protected share and add it to the key.

        Returns:
            Share index that was input.

        Raises:
            ThresholdKeyError: If no questions exist or the answer is wrong.
        """
        tkey = self._require_tkey()
        store = self._require_store(tkey)
        question = str(store["question"])
        share = (hex_to_scalar(store["nonce"]) + answer_hash(question, answer)) % CURVE_ORDER
        try:
            index = tkey.input_share(format(share, "x"))
        except ThresholdKeyError as error:
            raise ThresholdKeyError("Incorrect answer to security question.") from error
        if index != hex_to_scalar(store["shareIndex"]):
            raise ThresholdKeyError("Incorrect answer to security question.")
        return index

    def change_security_question_and_answer(self, new_answer: str, new_question: str) -> None:
        """Re-protect the question share under a new question and answer.

        Raises:
            ThresholdKeyError: If no questions exist or the share is unknown.
        """
        tkey = self._require_tkey()
        store = self._require_store(tkey)
        share_index = hex_to_scalar(store["shareIndex"])
        share = tkey.share_at(share_index)
        tkey.set_general_store(
            self.module_name,
            _question_store(new_question, new_answer, share_index, share),
        )
        _LOGGER.info("security_question_changed", share_index=store["shareIndex"])

    def _require_tkey(self) -> "ThresholdKey":
        if self._tkey is None:
            raise ThresholdKeyError(
                "SecurityQuestionsModule is not attached to a ThresholdKey."
            )
        return self._tkey

    def _require_store(self, tkey: "ThresholdKey") -> dict[str, Any]:
        store = tkey.get_general_store(self.module_name)
        if not store:
            raise ThresholdKeyError(
                "No security questions are set for this key. "
                "Call generate_new_share_with_security_questions() first."
            )
        return dict(store)


def answer_hash(question: str, answer: str) -> int:
    """Hash a question and answer into a scalar."""
    digest = hashlib.sha256((question + answer).encode("utf-8")).digest()
    return int.from_bytes(digest, "big") % CURVE_ORDER


def _question_store(question: str, answer: str, share_index: int, share: int) -> dict[str, str]:
    nonce = (share - answer_hash(question, answer)) % CURVE_ORDER
    return {
        "question": question,
        "shareIndex": scalar_to_hex(share_index),
        "nonce": scalar_to_hex(nonce),
    }
