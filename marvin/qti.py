"""
# Marvin
# Copyright (c) 2026 Dale Chapman
# Licensed under the MIT License. See LICENSE in the project root.

qti.py

Convert QTI 2.x assessment items into quiz question dicts.

The converter reads one <assessmentItem> and produces:

    {
        "migration_id": "...",
        "question_name": "...",
        "question_text": "<p>...</p>",
        "question_type": "short_answer_question" | "essay_question" | ...,
        "points_possible": 1.0,
        "answers": [{"id": 1234, "text": "...", "weight": 100, "comments": ""}],
        "correct_comments": "...",      # when feedback is present
        "incorrect_comments": "...",
        "neutral_comments": "...",
    }

ExtendedTextInteraction covers items answered with free text: short
answer, essay, and fill-in-multiple-blanks exports (including the Vista
and NMTOKEN-rewritten flavors).
"""

from __future__ import annotations

import copy
import logging
import random
import re
from typing import Any, Dict, Iterator, List, Optional, Set, Union

from lxml import etree

from marvin.errors import QTIParseError


logger = logging.getLogger(__name__)

DEFAULT_CORRECT_WEIGHT = 100
DEFAULT_POINTS_POSSIBLE = 1.0

INTERACTION_TAGS = {
    "extendedTextInteraction",
    "textEntryInteraction",
    "choiceInteraction",
    "orderInteraction",
    "matchInteraction",
    "inlineChoiceInteraction",
    "uploadInteraction",
}

FIB_QUESTION = "fill_in_multiple_blanks_question"
BLANK_PATTERN = re.compile(r"\[([^\]]*)\]")
NMTOKEN_PATTERN = re.compile(r'Warning: replacing bad NMTOKEN "([^"]+)" with "([^"]+)"')
ILLEGAL_BLANK_CHARS = re.compile(r"[^A-Za-z0-9\-._]")


# ============================================================================
# XML Helpers
# ============================================================================

def parse_xml(xml: Union[str, bytes]) -> etree._Element:
    """Parse QTI XML and drop namespaces so lookups can use bare tag names."""
    if isinstance(xml, str):
        xml = xml.encode("utf-8")
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(xml, parser)
    except etree.XMLSyntaxError as e:
        raise QTIParseError("QTI document is not well-formed XML", cause=e)

    for el in root.iter():
        if isinstance(el.tag, str):
            el.tag = etree.QName(el).localname
    etree.cleanup_namespaces(root)
    return root


def inner_xml(el: etree._Element) -> str:
    """Serialize an element's children (and leading text) without the element itself."""
    parts = [el.text or ""]
    for child in el:
        parts.append(etree.tostring(child, encoding="unicode", with_tail=True))
    return "".join(parts).strip()


def node_text(el: Optional[etree._Element]) -> Optional[str]:
    if el is None:
        return None
    return " ".join("".join(el.itertext()).split())


def _remove_keep_tail(el: etree._Element) -> None:
    parent = el.getparent()
    if parent is None:
        return
    tail = el.tail or ""
    prev = el.getprevious()
    if prev is not None:
        prev.tail = (prev.tail or "") + tail
    else:
        parent.text = (parent.text or "") + tail
    parent.remove(el)


# ============================================================================
# Converters
# ============================================================================

class AssessmentItemConverter:
    """Shared parsing for one QTI assessmentItem."""

    def __init__(
        self,
        xml: Union[str, bytes],
        question_type: Optional[str] = None,
        is_vista_fib: bool = False,
        question_text: Optional[str] = None,
    ):
        root = parse_xml(xml)
        item = root if root.tag == "assessmentItem" else root.find(".//assessmentItem")
        if item is None:
            raise QTIParseError(
                "No assessmentItem found",
                suggestion="Pass a QTI 2.x item document, not a manifest or test",
            )
        self.root = root
        self.doc = item
        self._used_ids: Set[int] = set()
        self._random = random.Random()

        self.question: Dict[str, Any] = {
            "migration_id": item.get("identifier"),
            "question_name": item.get("title") or "",
            "question_text": question_text if question_text is not None else self._question_text(),
            "question_type": question_type,
            "points_possible": self._points_possible(),
            "answers": [],
        }
        if is_vista_fib:
            self.question["is_vista_fib"] = True

    def create_instructure_question(self) -> Dict[str, Any]:
        question = self.parse_question_data()
        logger.debug("[qti] parsed %s as %s", question.get("migration_id"), question.get("question_type"))
        return question

    def parse_question_data(self) -> Dict[str, Any]:
        return self.question

    # ---------- item body ----------

    def _question_text(self) -> str:
        body = self.doc.find("itemBody")
        if body is None:
            return ""
        body = copy.deepcopy(body)
        for el in list(body.iter(*INTERACTION_TAGS)):
            prompt = el.find("prompt")
            if prompt is not None:
                # keep the prompt wording, drop the interaction wrapper
                el.addprevious(prompt)
                prompt.tail = el.tail
                el.tail = None
            _remove_keep_tail(el)
        for prompt in list(body.iter("prompt")):
            wrapper = etree.Element("div")
            wrapper.text = prompt.text
            wrapper.extend(list(prompt))
            wrapper.tail = prompt.tail
            prompt.addprevious(wrapper)
            prompt.getparent().remove(prompt)
        return inner_xml(body)

    def _points_possible(self) -> float:
        value = self.doc.find("outcomeDeclaration[@identifier='MAXSCORE']/defaultValue/value")
        if value is not None and value.text:
            try:
                return float(value.text.strip())
            except ValueError:
                logger.warning("[qti:warn] ignoring MAXSCORE %r", value.text)
        return DEFAULT_POINTS_POSSIBLE

    # ---------- lookups ----------

    def get_node_val(self, node: etree._Element, path: str) -> Optional[str]:
        found = node.find(f".//{path}")
        if found is None:
            return None
        return (found.text or "").strip()

    def get_node_att(self, node: etree._Element, path: str, attribute: str) -> Optional[str]:
        found = node.find(f".//{path}")
        if found is None:
            return None
        return found.get(attribute)

    def document_comments(self) -> Iterator[etree._Element]:
        """Comments sitting at the top level of the document, in document order."""
        preceding = [n for n in self.root.itersiblings(preceding=True) if n.tag is etree.Comment]
        for comment in reversed(preceding):
            yield comment
        for node in self.root.itersiblings():
            if node.tag is etree.Comment:
                yield node

    # ---------- ids ----------

    def unique_local_id(self) -> int:
        while True:
            candidate = self._random.randint(1000, 10000)
            if candidate not in self._used_ids:
                self._used_ids.add(candidate)
                return candidate

    def get_or_generate_answer_id(self, response_identifier: Optional[str]) -> int:
        ident = re.sub(r"\A(?:response|RESPONSE)_", "", (response_identifier or "").strip())
        if ident.isdigit():
            number = int(ident)
            if number not in self._used_ids:
                self._used_ids.add(number)
                return number
        return self.unique_local_id()

    # ---------- feedback ----------

    def get_feedback_id(self, cond: etree._Element) -> Optional[str]:
        outcome = cond.find(".//setOutcomeValue[@identifier='FEEDBACK']")
        if outcome is None:
            return None
        value = outcome.find(".//baseValue[@baseType='identifier']")
        if value is None or not value.text:
            return None
        feedback_id = value.text.strip()
        # general feedback attached to a single answer is not answer feedback
        if re.search(r"general_|_all", feedback_id, re.IGNORECASE):
            return None
        return feedback_id

    def feedback_text(self, identifier: str) -> Optional[str]:
        for fb in self.doc.iter("modalFeedback"):
            if fb.get("identifier") == identifier:
                return inner_xml(fb)
        return None

    def attach_feedback_values(self, answers: List[Dict[str, Any]]) -> None:
        for answer in answers:
            feedback_id = answer.get("feedback_id")
            if not feedback_id:
                continue
            text = self.feedback_text(feedback_id)
            if text:
                answer["comments"] = text

    def get_feedback(self) -> None:
        answer_feedback = {a.get("feedback_id") for a in self.question["answers"]}
        for fb in self.doc.iter("modalFeedback"):
            identifier = fb.get("identifier") or ""
            if identifier in answer_feedback:
                continue
            text = inner_xml(fb)
            if re.search(r"wrong|incorrect|_IC$", identifier, re.IGNORECASE):
                self.question["incorrect_comments"] = text
            elif re.search(r"correct|_C$", identifier, re.IGNORECASE):
                self.question["correct_comments"] = text
            elif re.search(r"general|all|neutral", identifier, re.IGNORECASE):
                self.question["neutral_comments"] = text


class ExtendedTextInteraction(AssessmentItemConverter):
    """Free-text answers: short answer, essay and fill-in-multiple-blanks."""

    def parse_question_data(self) -> Dict[str, Any]:
        self.process_response_conditions()
        if self.question["answers"]:
            self.question["question_type"] = self.question["question_type"] or "short_answer_question"
            self.attach_feedback_values(self.question["answers"])
        else:
            # a short answer question with no answers is an essay question
            self.question["question_type"] = "essay_question"

        self.get_feedback()
        return self.question

    def _fib_map(self) -> Dict[str, str]:
        fib_map: Dict[str, str] = {}
        if self.question.pop("is_vista_fib", False):
            # Vista labels blanks FIB01, FIB02... in order of the [names] in the text
            matches = BLANK_PATTERN.finditer(self.question["question_text"])
            for count, match in enumerate(matches, start=1):
                fib_map[f"FIB{count:02d}"] = match.group(1)
        elif self.question["question_type"] == FIB_QUESTION:
            # Exporters that rename illegal blank ids leave a comment saying so;
            # map the new ids back to the names used in the question text.
            for comment in self.document_comments():
                for match in NMTOKEN_PATTERN.finditer(comment.text or ""):
                    fib_map[match.group(2)] = match.group(1)
        return fib_map

    def process_response_conditions(self) -> None:
        question = self.question
        is_fib = question["question_type"] == FIB_QUESTION
        fib_map = self._fib_map()

        for cond in self.doc.iterfind(".//responseProcessing//responseCondition"):
            for match in cond.xpath(".//stringMatch | .//match"):
                text = self.get_node_val(match, "baseValue[@baseType='string']")
                if text is None:
                    text = self.get_node_val(match, "baseValue[@baseType='identifier']")

                existing = False
                answer: Dict[str, Any] = {}
                if not is_fib:
                    for candidate in question["answers"]:
                        if candidate.get("text") == text:
                            answer = candidate
                            existing = True
                            break

                if answer.get("text") is None:
                    answer["text"] = text
                if not answer.get("feedback_id"):
                    feedback_id = self.get_feedback_id(cond)
                    if feedback_id:
                        answer["feedback_id"] = feedback_id

                if is_fib:
                    blank = self.get_node_att(match, "variable", "identifier")
                    if blank:
                        self._assign_blank(answer, fib_map.get(blank.strip(), blank.strip()))

                if existing or not answer["text"]:
                    continue

                question["answers"].append(answer)
                answer["weight"] = 100
                answer["comments"] = ""
                base_value = match.find(".//baseValue")
                answer["id"] = self.get_or_generate_answer_id(
                    base_value.get("identifier") if base_value is not None else None
                )

        # correct answers can also be listed explicitly
        for value in self.doc.iterfind(".//correctResponse/value"):
            question["answers"].append({
                "id": self.unique_local_id(),
                "weight": DEFAULT_CORRECT_WEIGHT,
                "text": (value.text or "").strip(),
            })

    def _assign_blank(self, answer: Dict[str, Any], blank_id: str) -> None:
        question = self.question
        cleaned = ILLEGAL_BLANK_CHARS.sub("-", blank_id)
        if cleaned != blank_id:
            question["question_text"] = question["question_text"].replace(f"[{blank_id}]", f"[{cleaned}]")
        answer["blank_id"] = cleaned
        if f"[{cleaned}]" not in question["question_text"]:
            question["question_text"] += f" [{cleaned}]"


def parse_question(xml: Union[str, bytes], **options: Any) -> Dict[str, Any]:
    """Parse a free-text QTI item into a question dict."""
    return ExtendedTextInteraction(xml, **options).create_instructure_question()
