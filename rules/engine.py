"""
Filter Engine - Script evaluation with variables
================================================

This module implements the filter engine that runs a script against
one incoming message. Scripts are structured command trees (loaded
from YAML or plain dicts), not Sieve source text:

    commands:
      - set: [":lower", "who", "${1}"]
      - if:
          test:
            header: {match: matches, names: Subject, keys: "*"}
          then:
            - tag: "${who}"

Every evaluation gets its own EvaluationContext, holding a fresh
VariableStore, the resolved variables feature flag and the result
being built. Actions are recorded, not delivered.
"""

import email
import yaml
from abc import ABC, abstractmethod
from email import policy
from email.message import Message
from email.utils import getaddresses
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from dataclasses import dataclass, field
from enum import Enum

from core.config import Config
from core.exceptions import MessageError, ScriptError
from core.logging import get_logger, set_log_context, clear_log_context
from variables.commands import (
    CaptureBinder,
    SetCommand,
    SetCommandEvaluator,
    parse_set_arguments,
)
from variables.expander import expand
from variables.store import VariableStore

from .matching import Comparator, MatchType, match_value

logger = get_logger("rules.engine")


class Action(Enum):
    """Actions a script can take."""
    TAG = "tag"
    FILEINTO = "fileinto"
    LOG = "log"
    KEEP = "keep"
    DISCARD = "discard"
    STOP = "stop"


# Actions that take a string argument
ARGUMENT_ACTIONS = {Action.TAG, Action.FILEINTO, Action.LOG}


class AddressPart(Enum):
    """Part of an address compared by an address test."""
    ALL = "all"
    LOCALPART = "localpart"
    DOMAIN = "domain"


@dataclass
class FilterResult:
    """
    Actions recorded while evaluating a script.

    Attributes:
        tags (list): Tag names, in order, without duplicates
        folders (list): Folders from ``fileinto``, in order
        logs (list): Expanded ``log`` texts
        explicit_keep (bool): Whether ``keep`` ran
        discarded (bool): Whether ``discard`` ran
        stopped (bool): Whether ``stop`` ended the script
    """
    tags: List[str] = field(default_factory=list)
    folders: List[str] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)
    explicit_keep: bool = False
    discarded: bool = False
    stopped: bool = False

    @property
    def kept(self) -> bool:
        """Explicit keep, or implicit keep when nothing cancelled it."""
        return self.explicit_keep or not (self.discarded or self.folders)

    def destinations(self, default_folder: str = "INBOX") -> List[str]:
        """Folders the message ends up in."""
        folders = list(self.folders)
        if self.kept and default_folder not in folders:
            folders.append(default_folder)
        return folders

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tags": list(self.tags),
            "folders": list(self.folders),
            "logs": list(self.logs),
            "kept": self.kept,
            "discarded": self.discarded,
            "stopped": self.stopped,
        }


@dataclass
class EvaluationContext:
    """
    State owned by one script evaluation over one message.

    Never shared between evaluations.
    """
    message: Message
    variables_enabled: bool = True
    store: VariableStore = field(default_factory=VariableStore)
    result: FilterResult = field(default_factory=FilterResult)

    def __post_init__(self):
        self.setter = SetCommandEvaluator(self.store, enabled=self.variables_enabled)
        self.captures = CaptureBinder(self.store, enabled=self.variables_enabled)

    def expand(self, text: str) -> str:
        """Expand ``text``, or return it untouched when variables are off."""
        if not self.variables_enabled:
            return text
        return expand(text, self.store)

    def expand_all(self, values: Sequence[str]) -> List[str]:
        return [self.expand(value) for value in values]


# ----------------------------------------------------------------------
# Tests
# ----------------------------------------------------------------------

class ScriptTest(ABC):
    """
    Abstract base class for script tests.

    Subclasses must implement:
    - evaluate(): Decide the test against the current message
    """

    @abstractmethod
    def evaluate(self, ctx: EvaluationContext) -> bool:
        """
        Evaluate the test.

        Args:
            ctx: Context of the running evaluation

        Returns:
            True if the test holds
        """
        pass


@dataclass
class ConstantTest(ScriptTest):
    value: bool

    def evaluate(self, ctx: EvaluationContext) -> bool:
        return self.value


@dataclass
class _KeyedTest(ScriptTest):
    """Shared logic for tests comparing values against keys."""
    keys: List[str]
    match_type: MatchType = MatchType.IS
    comparator: Comparator = Comparator.ASCII_CASEMAP

    @abstractmethod
    def values(self, ctx: EvaluationContext) -> List[str]:
        """Values taken from the message or script to compare against the keys."""
        pass

    def evaluate(self, ctx: EvaluationContext) -> bool:
        keys = ctx.expand_all(self.keys)
        for value in self.values(ctx):
            for key in keys:
                groups = match_value(value, key, self.match_type, self.comparator)
                if groups is None:
                    continue
                if self.match_type is MatchType.MATCHES:
                    ctx.captures.bind(groups)
                return True
        return False


@dataclass
class HeaderTest(_KeyedTest):
    names: List[str] = field(default_factory=list)

    def values(self, ctx: EvaluationContext) -> List[str]:
        values = []
        for name in ctx.expand_all(self.names):
            values.extend(str(v) for v in ctx.message.get_all(name, []))
        return values


@dataclass
class AddressTest(HeaderTest):
    part: AddressPart = AddressPart.ALL

    def values(self, ctx: EvaluationContext) -> List[str]:
        addresses = [addr for _, addr in getaddresses(super().values(ctx)) if addr]
        if self.part is AddressPart.LOCALPART:
            return [addr.rsplit("@", 1)[0] for addr in addresses]
        if self.part is AddressPart.DOMAIN:
            return [addr.rsplit("@", 1)[1] if "@" in addr else "" for addr in addresses]
        return addresses


@dataclass
class StringTest(_KeyedTest):
    sources: List[str] = field(default_factory=list)

    def values(self, ctx: EvaluationContext) -> List[str]:
        return ctx.expand_all(self.sources)


@dataclass
class ExistsTest(ScriptTest):
    names: List[str]

    def evaluate(self, ctx: EvaluationContext) -> bool:
        return all(ctx.message.get(name) is not None for name in ctx.expand_all(self.names))


@dataclass
class AllOfTest(ScriptTest):
    tests: List[ScriptTest]

    def evaluate(self, ctx: EvaluationContext) -> bool:
        return all(test.evaluate(ctx) for test in self.tests)


@dataclass
class AnyOfTest(ScriptTest):
    tests: List[ScriptTest]

    def evaluate(self, ctx: EvaluationContext) -> bool:
        return any(test.evaluate(ctx) for test in self.tests)


@dataclass
class NotTest(ScriptTest):
    test: ScriptTest

    def evaluate(self, ctx: EvaluationContext) -> bool:
        return not self.test.evaluate(ctx)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

@dataclass
class SetNode:
    command: SetCommand


@dataclass
class ActionNode:
    action: Action
    argument: str = ""


@dataclass
class IfNode:
    branches: List[Tuple[ScriptTest, List[Any]]]
    otherwise: List[Any] = field(default_factory=list)


Node = Union[SetNode, ActionNode, IfNode]


@dataclass
class FilterScript:
    """
    A loaded, validated filter script.

    Attributes:
        commands (list): Top-level command nodes
        name (str): Optional script name for logging
        require (list): Declared extensions (informational)
    """
    commands: List[Node]
    name: str = ""
    require: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterScript":
        """
        Build a script from its dict form.

        Raises:
            ScriptError: If the structure is malformed
            SieveSyntaxError: If a ``set`` command is malformed
        """
        if not isinstance(data, dict):
            raise ScriptError("Script must be a mapping")
        commands = _parse_block(data.get("commands", []))
        script = cls(
            commands=commands,
            name=str(data.get("name", "")),
            require=_string_list(data.get("require", []), "require"),
        )
        logger.debug(f"Loaded script {script.name!r} with {len(commands)} top-level command(s)")
        return script

    @classmethod
    def from_yaml(cls, text: str) -> "FilterScript":
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ScriptError(f"Failed to parse script: {e}")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "FilterScript":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except IOError as e:
            raise ScriptError(f"Failed to read script: {e}", {"path": str(path)})
        script = cls.from_yaml(text)
        if not script.name:
            script.name = path.stem
        return script


def _string(value: Any, what: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ScriptError(f"{what} must be a string, got {value!r}")


def _string_list(value: Any, what: str) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [_string(item, what) for item in value]
    return [_string(value, what)]


def _parse_block(items: Any) -> List[Node]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise ScriptError(f"Command block must be a list, got {items!r}")
    return [_parse_command(item) for item in items]


def _single_key(item: Any, what: str) -> Tuple[str, Any]:
    if isinstance(item, str):
        return item.lower(), None
    if not isinstance(item, dict) or len(item) != 1:
        raise ScriptError(f"Each {what} must be a single-key mapping, got {item!r}")
    key, value = next(iter(item.items()))
    return str(key).lower(), value


def _parse_command(item: Any) -> Node:
    keyword, body = _single_key(item, "command")

    if keyword == "set":
        if isinstance(body, dict):
            arguments = [
                ":" + _string(m, "set modifier").lstrip(":")
                for m in _string_list(body.get("modifiers", []), "set modifier")
            ]
            arguments += [
                _string(body[k], f"set {k}") for k in ("name", "value") if k in body
            ]
        else:
            arguments = _string_list(body if body is not None else [], "set argument")
        return SetNode(parse_set_arguments(arguments))

    if keyword == "if":
        if not isinstance(body, dict) or "test" not in body:
            raise ScriptError(f"if requires a test, got {body!r}")
        branches = [(_parse_test(body["test"]), _parse_block(body.get("then", [])))]
        for branch in body.get("elsif", []) or []:
            if not isinstance(branch, dict) or "test" not in branch:
                raise ScriptError(f"elsif requires a test, got {branch!r}")
            branches.append((_parse_test(branch["test"]), _parse_block(branch.get("then", []))))
        return IfNode(branches=branches, otherwise=_parse_block(body.get("else", [])))

    try:
        action = Action(keyword)
    except ValueError:
        raise ScriptError(f"Unknown command: {keyword}", {"command": keyword}) from None

    if action in ARGUMENT_ACTIONS:
        if body is None:
            raise ScriptError(f"{action.value} requires an argument")
        return ActionNode(action, _string(body, action.value))
    return ActionNode(action)


def _parse_test(item: Any) -> ScriptTest:
    if isinstance(item, bool):
        return ConstantTest(item)

    keyword, body = _single_key(item, "test")

    if keyword in ("true", "false"):
        return ConstantTest(keyword == "true")
    if keyword in ("allof", "anyof"):
        if not isinstance(body, list):
            raise ScriptError(f"{keyword} requires a list of tests")
        tests = [_parse_test(t) for t in body]
        return AllOfTest(tests) if keyword == "allof" else AnyOfTest(tests)
    if keyword == "not":
        return NotTest(_parse_test(body))
    if keyword == "exists":
        return ExistsTest(_string_list(body, "exists header"))

    if keyword not in ("header", "address", "string"):
        raise ScriptError(f"Unknown test: {keyword}", {"test": keyword})
    if not isinstance(body, dict):
        raise ScriptError(f"{keyword} test requires a mapping, got {body!r}")

    options = dict(
        keys=_string_list(body.get("keys", []), f"{keyword} key"),
        match_type=MatchType.parse(body.get("match", "is")),
        comparator=Comparator.parse(body.get("comparator", Comparator.ASCII_CASEMAP.value)),
    )
    if not options["comparator"].supports(options["match_type"]):
        raise ScriptError(
            f"Comparator {options['comparator'].value} does not support "
            f":{options['match_type'].value}"
        )
    if keyword == "string":
        return StringTest(sources=_string_list(body.get("sources", []), "string source"), **options)

    names = _string_list(body.get("names", []), f"{keyword} name")
    if keyword == "header":
        return HeaderTest(names=names, **options)

    part = str(body.get("part", "all")).lstrip(":").lower()
    try:
        address_part = AddressPart(part)
    except ValueError:
        raise ScriptError(f"Unknown address part: {part}") from None
    return AddressTest(names=names, part=address_part, **options)


def parse_message(raw: Union[str, bytes, Message]) -> Message:
    """
    Parse a raw RFC 5322 message.

    Args:
        raw: Message text, bytes, or an already parsed message

    Returns:
        email.message.Message
    """
    if isinstance(raw, Message):
        return raw
    if isinstance(raw, bytes):
        return email.message_from_bytes(raw, policy=policy.default)
    return email.message_from_string(raw, policy=policy.default)


def load_message(path: Union[str, Path]) -> Message:
    """
    Read and parse a message file.

    Raises:
        MessageError: If the file cannot be read
    """
    try:
        with open(path, "rb") as f:
            return parse_message(f.read())
    except IOError as e:
        raise MessageError(f"Failed to read message: {e}", {"path": str(path)})


class FilterEngine:
    """
    Runs filter scripts against messages.

    The variables feature flag is resolved per account from the
    configuration before each evaluation.

    Example:
        engine = FilterEngine()
        script = FilterScript.from_dict({"commands": [
            {"set": [":upper", "var", "test"]},
            {"tag": "${var}"},
        ]})
        result = engine.evaluate(script, "Subject: Test\\n\\nHello World.")
        print(result.tags)  # ['TEST']
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the filter engine.

        Args:
            config: Configuration (defaults are used if not given)
        """
        self.config = config or Config()

    def load_script(self, path: Optional[str] = None) -> FilterScript:
        """
        Load a script from ``path`` or from the configured script path.

        Raises:
            ScriptError: If no path is available or loading fails
        """
        path = path or self.config.filter.script_path
        if not path:
            raise ScriptError("No filter script configured")
        return FilterScript.from_file(path)

    def evaluate(
        self,
        script: FilterScript,
        message: Union[str, bytes, Message],
        account: Optional[str] = None
    ) -> FilterResult:
        """
        Evaluate a script against one message.

        Args:
            script: Loaded script
            message: Message to filter
            account: Account the message is delivered to

        Returns:
            FilterResult with the recorded actions
        """
        msg = parse_message(message)
        enabled = self.config.variables.enabled_for(account)
        ctx = EvaluationContext(message=msg, variables_enabled=enabled)

        set_log_context(account=account or "", message_id=str(msg.get("Message-ID", "")))
        try:
            if not enabled:
                logger.info("Variables disabled, set and ${...} are left unevaluated")
            ctx.result.stopped = not self._run(script.commands, ctx)
        finally:
            clear_log_context()

        return ctx.result

    def _run(self, commands: List[Node], ctx: EvaluationContext) -> bool:
        """Run a command block. Returns False once ``stop`` has run."""
        for node in commands:
            if isinstance(node, SetNode):
                ctx.setter.execute(node.command)
            elif isinstance(node, IfNode):
                for test, block in node.branches:
                    if test.evaluate(ctx):
                        if not self._run(block, ctx):
                            return False
                        break
                else:
                    if not self._run(node.otherwise, ctx):
                        return False
            elif not self._act(node, ctx):
                return False
        return True

    def _act(self, node: ActionNode, ctx: EvaluationContext) -> bool:
        result = ctx.result
        argument = ctx.expand(node.argument) if node.action in ARGUMENT_ACTIONS else ""

        if node.action is Action.TAG:
            result.add_tag(argument)
        elif node.action is Action.FILEINTO:
            result.folders.append(argument)
        elif node.action is Action.LOG:
            logger.info(f"script log: {argument}")
            result.logs.append(argument)
        elif node.action is Action.KEEP:
            result.explicit_keep = True
        elif node.action is Action.DISCARD:
            result.discarded = True
        elif node.action is Action.STOP:
            return False
        return True
