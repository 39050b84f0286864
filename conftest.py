"""
Shared pytest fixtures.

`make_runner()` returns a ScriptedRunner: a CommandRunner that answers from canned output
keyed by the space-joined argument list, so git/gh logic can be tested without a repository.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from common import CommandRunner


class ScriptedRunner(CommandRunner):
    """Canned-output runner.

    outputs:    "rev-list --count feat ^main" -> "3"   (None -> exit 1)
    predicates: "merge-base --is-ancestor feat main" -> True/False
    Anything unscripted exits 128, like git on an unknown ref.
    """

    def __init__(
        self,
        outputs: Optional[Dict[str, Optional[str]]] = None,
        predicates: Optional[Dict[str, bool]] = None,
        *,
        program: str = "git",
    ):
        self.outputs: Dict[str, Optional[str]] = dict(outputs or {})
        self.predicates: Dict[str, bool] = dict(predicates or {})
        self.program = program
        self.calls: List[str] = []

    def describe(self, args: Sequence[str]) -> str:
        return " ".join([self.program, *args])

    def _execute(self, args: Sequence[str]) -> Tuple[int, str, str]:
        key = " ".join(args)
        self.calls.append(key)
        if key in self.predicates:
            return (0 if self.predicates[key] else 1), "", ""
        if key in self.outputs:
            out = self.outputs[key]
            if out is None:
                return 1, "", f"fatal: scripted failure for {key}"
            return 0, out, ""
        return 128, "", f"fatal: unscripted command: {key}"

    def add_branch(
        self,
        name: str,
        *,
        date: str,
        author: str = "Ada Lovelace",
        subject: str = "Work in progress",
        base: str = "main",
        ancestor: bool = False,
        ahead: int = 2,
        merge_base: str = "0123abc",
        shortstat: str = " 3 files changed, 10 insertions(+), 4 deletions(-)",
    ) -> None:
        """Script every query BranchInspector issues for one branch."""
        self.outputs[f"log -1 --format=%aI|%an|%s {name}"] = f"{date}|{author}|{subject}"
        self.predicates[f"merge-base --is-ancestor {name} {base}"] = ancestor
        self.outputs[f"rev-list --count {name} ^{base}"] = str(ahead)
        self.outputs[f"merge-base {name} {base}"] = merge_base
        self.outputs[f"rev-list --count {name} ^{merge_base}"] = str(ahead)
        self.outputs[f"diff --shortstat -l0 {merge_base} {name}"] = shortstat

    def count(self, prefix: str) -> int:
        return sum(1 for c in self.calls if c.startswith(prefix))


@pytest.fixture
def make_runner():
    return ScriptedRunner
