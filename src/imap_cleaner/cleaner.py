"""Interactive cleaning workflow - page through groups and delete them."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from rich.markup import escape

from .aggregator import rank_groups
from .config import CleanerConfig
from .constants import AFFIRMATIVE, PAGE_SIZE
from .dispatcher import delete_messages
from .display import (
    console,
    display_deletion_report,
    display_group_page,
    display_match_summary,
)
from .errors import UserDeclined
from .models import DeletionReport, Group, PageView, ScanResult

logger = logging.getLogger(__name__)

COMMAND_PROMPT = "num=del  n/p  q : "

Ask = Callable[[str], str]


def is_affirmative(answer: str) -> bool:
    return answer.strip().lower() in AFFIRMATIVE


@dataclass
class PageState:
    """Ranked groups and the page currently shown."""

    groups: list[Group]
    page_size: int = PAGE_SIZE
    page_index: int = 0

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self.groups) / self.page_size))

    @property
    def is_last_page(self) -> bool:
        return self.page_index >= self.page_count - 1

    def view(self) -> PageView:
        start = self.page_index * self.page_size
        return PageView(
            groups=self.groups[start : start + self.page_size],
            start=start,
            total=len(self.groups),
            page_index=self.page_index,
            page_count=self.page_count,
        )

    def next_page(self) -> bool:
        if self.is_last_page:
            return False
        self.page_index += 1
        return True

    def prev_page(self) -> bool:
        if self.page_index == 0:
            return False
        self.page_index -= 1
        return True

    def remove(self, group: Group) -> None:
        """Drop a group; step back a page if the current one is now empty."""
        for index, candidate in enumerate(self.groups):
            if candidate is group:
                del self.groups[index]
                break
        if self.page_index > 0 and self.page_index * self.page_size >= len(self.groups):
            self.page_index -= 1


class ControllerState(str, Enum):
    LISTING = "listing"
    AWAITING_COMMAND = "awaiting_command"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    DELETING = "deleting"
    TERMINAL = "terminal"


@dataclass
class DeleteController:
    """Command-driven state machine over the ranked groups.

    Input is fed one line at a time through command() and confirm(), so the
    workflow can be driven by a terminal or by a scripted list of lines.
    """

    pages: PageState
    delete: Callable[[Group], DeletionReport]
    state: ControllerState = ControllerState.LISTING
    notice: str | None = None
    pending: Group | None = None
    last_report: DeletionReport | None = None
    deleted_total: int = 0
    removed: list[Group] = field(default_factory=list)

    @classmethod
    def for_groups(
        cls,
        groups: list[Group],
        delete: Callable[[Group], DeletionReport],
        page_size: int = PAGE_SIZE,
    ) -> DeleteController:
        controller = cls(pages=PageState(rank_groups(groups), page_size=page_size), delete=delete)
        if not groups:
            controller.state = ControllerState.TERMINAL
        return controller

    def _expect(self, state: ControllerState) -> None:
        if self.state is not state:
            raise RuntimeError(f"expected state {state.value}, controller is {self.state.value}")

    def view(self) -> PageView:
        return self.pages.view()

    def listed(self) -> None:
        """The current page has been shown; wait for a command."""
        self._expect(ControllerState.LISTING)
        self.notice = None
        self.state = ControllerState.AWAITING_COMMAND

    def command(self, line: str) -> None:
        self._expect(ControllerState.AWAITING_COMMAND)
        text = line.strip().lower()
        self.last_report = None

        if text == "q":
            self.state = ControllerState.TERMINAL
            return
        if text == "n":
            if not self.pages.next_page():
                self.notice = "End"
            self.state = ControllerState.LISTING
            return
        if text == "p":
            self.pages.prev_page()
            self.state = ControllerState.LISTING
            return

        shown = self.pages.view().groups
        if not text.isdecimal() or not 1 <= int(text) <= len(shown):
            self.notice = f"bad input: {line.strip()!r}"
            self.state = ControllerState.LISTING
            return

        self.pending = shown[int(text) - 1]
        self.state = ControllerState.AWAITING_CONFIRMATION

    def confirm(self, answer: str) -> None:
        self._expect(ControllerState.AWAITING_CONFIRMATION)
        group, self.pending = self.pending, None
        if not is_affirmative(answer):
            self.state = ControllerState.AWAITING_COMMAND
            return

        self.state = ControllerState.DELETING
        report = self.delete(group)
        self.last_report = report
        self.deleted_total += report.deleted
        self.pages.remove(group)
        self.removed.append(group)

        if not self.pages.groups:
            self.notice = "Nothing left"
            self.state = ControllerState.TERMINAL
        else:
            self.state = ControllerState.LISTING

    def quit(self) -> None:
        self.pending = None
        self.state = ControllerState.TERMINAL


def run_controller(controller: DeleteController, config: CleanerConfig, ask: Ask) -> None:
    """Drive the controller with lines from ask() until it terminates."""
    while controller.state is not ControllerState.TERMINAL:
        try:
            if controller.state is ControllerState.LISTING:
                display_group_page(
                    controller.view(),
                    config.group_field,
                    size_accounting=config.size_accounting,
                    notice=controller.notice,
                )
                controller.listed()
            elif controller.state is ControllerState.AWAITING_COMMAND:
                controller.command(ask(COMMAND_PROMPT))
            elif controller.state is ControllerState.AWAITING_CONFIRMATION:
                group = controller.pending
                controller.confirm(ask(f'Delete ALL for "{escape(group.key)}" ({group.count})? (y/N): '))
                if controller.last_report is not None:
                    display_deletion_report(controller.last_report)
        except EOFError:
            controller.quit()

    if controller.notice:
        console.print(controller.notice)


def interactive_clean(
    service,
    scan_result: ScanResult,
    config: CleanerConfig,
    ask: Ask | None = None,
) -> int:
    """Page through the ranked groups, deleting the ones the operator picks.

    Returns the number of messages deleted.
    """
    if not scan_result.groups:
        console.print("Mailbox empty")
        return 0

    def delete(group: Group) -> DeletionReport:
        return delete_messages(service, group.messages_by_folder, scan_result.folder_validity)

    controller = DeleteController.for_groups(scan_result.groups, delete, page_size=config.page_size)
    run_controller(controller, config, ask or console.input)
    if controller.deleted_total:
        console.print(f"[bold]Deleted {controller.deleted_total} messages in total[/bold]")
    return controller.deleted_total


def match_clean(
    service,
    scan_result: ScanResult,
    config: CleanerConfig,
    ask: Ask | None = None,
) -> DeletionReport:
    """Show the match summary and delete every match after one confirmation.

    Raises UserDeclined when the answer is not yes.
    """
    ask = ask or console.input
    target = scan_result.target
    if target is None or target.count == 0:
        console.print("Nothing matches")
        return DeletionReport()

    display_match_summary(target, config.match, config.group_field)
    if not is_affirmative(ask("Delete? (y/N): ")):
        raise UserDeclined(f"Kept {target.count} matching messages")

    report = delete_messages(service, target.messages_by_folder, scan_result.folder_validity)
    display_deletion_report(report)
    return report
