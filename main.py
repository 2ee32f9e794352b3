"""
Console Front End for SurveySessionMachine

Terminal stand-in for the browser client. Talks to the API server
(SURVEY_API_URL) by default; with --local it loads the model and runs
the service in-process.

At any prompt, :chat switches to a free-form agent chat whose context
is kept on the server until cleared.

Usage:
    python main.py                 # against a running app.py
    python main.py --local         # everything in one process
    python main.py '#id=<uuid>'    # resume a shared survey
"""

import logging
import sys
from pathlib import Path

from surveyflow import config
from surveyflow.api_client import InProcessSurveyClient, SurveyApiClient
from surveyflow.commands import (
    ChooseTopic,
    GoBack,
    OpenHistory,
    OpenReview,
    RequestMoreQuestions,
    RequestSummary,
    ResumeSurvey,
    Reset,
    SendChatMessage,
    SubmitAnswer,
)
from surveyflow.contracts import QUESTION_TYPE_SCALE, ROLE_USER, SCALE_MAX, SCALE_MIN
from surveyflow.core.deep_link import DeepLinkResolver
from surveyflow.core.session_machine import SurveySessionMachine
from surveyflow.core.session_state import SurveySession
from surveyflow.errors import SurveyError
from surveyflow.results import IllegalCommand
from surveyflow.utils.session_phases import SessionPhase

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"quit", "exit", ":q", ":quit"}


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def print_question(session):
    question = session.current_question()
    print(f"\n[{session.progress()}]")
    print(f"{question.label}")
    if question.type == QUESTION_TYPE_SCALE:
        low = question.min_label or str(SCALE_MIN)
        high = question.max_label or str(SCALE_MAX)
        print(f"  ({SCALE_MIN} = {low}, {SCALE_MAX} = {high})")
    else:
        print("  (yes / no)")


def print_summary(session):
    summary = session.summary
    print_separator()
    print(f"SURVEY RESULTS: {session.topic}")
    print_separator()
    print(f"\n{summary.summary}\n")
    if summary.insights:
        print("Key insights:")
        for item in summary.insights:
            print(f"  - {item}")
    if summary.recommendations:
        print("Recommendations:")
        for item in summary.recommendations:
            print(f"  - {item}")
    if session.chat_history:
        print("\nConsultation so far:")
        for turn in session.chat_history:
            who = "You" if turn.role == ROLE_USER else "Assistant"
            print(f"  {who}: {turn.content}")
    print()


def print_rows(rows):
    print_separator("-")
    for row in rows:
        print(f"{row['number']:>3}. {row['label']} [{row['type']}]")
        print(f"     → {row['answer']}")
    print_separator("-")


def print_history(session):
    print_separator("-")
    if not session.history:
        print("No saved surveys yet.")
    for i, item in enumerate(session.history, 1):
        print(f"{i:>3}. {item.topic}  ({item.created_at})")
    print_separator("-")


def prompt_for(session):
    phase = session.phase
    if phase == SessionPhase.IDLE:
        return "Topic (:open <link>, :history, :chat, :quit)"
    if phase == SessionPhase.PRESENTING_QUESTION:
        return "Answer"
    if phase == SessionPhase.ROUND_COMPLETE:
        return "Round complete: [m]ore questions, [s]ummary, [r]eview, [h]istory, [n]ew"
    if phase == SessionPhase.SUMMARIZED:
        return "Ask a question, or :more, :review, :history, :report, :chat, :new"
    if phase == SessionPhase.REVIEWING:
        return "Enter to go back"
    if phase == SessionPhase.BROWSING_HISTORY:
        return "Number to open, Enter to go back"
    return ">"


def command_for(text, session):
    """
    Translate console input into a machine command.

    Returns:
        Command, or None when the input is handled locally or invalid
    """
    phase = session.phase
    lowered = text.lower()

    if lowered.startswith(":open "):
        return ResumeSurvey(text.split(None, 1)[1])
    round_done = phase == SessionPhase.ROUND_COMPLETE
    if lowered == ":new" or (round_done and lowered == "n"):
        return Reset()
    if lowered == ":history" or (round_done and lowered == "h"):
        return OpenHistory()

    if phase == SessionPhase.IDLE:
        return ChooseTopic(text)

    if phase == SessionPhase.PRESENTING_QUESTION:
        return SubmitAnswer(text)

    if phase == SessionPhase.ROUND_COMPLETE:
        return {
            "m": RequestMoreQuestions(),
            "s": RequestSummary(),
            "r": OpenReview(),
        }.get(lowered)

    if phase == SessionPhase.SUMMARIZED:
        if lowered == ":more":
            return RequestMoreQuestions()
        if lowered == ":review":
            return OpenReview()
        if not text:
            return None
        return SendChatMessage(text)

    if phase == SessionPhase.REVIEWING:
        return GoBack()

    if phase == SessionPhase.BROWSING_HISTORY:
        if not text:
            return GoBack()
        if text.isdigit() and 1 <= int(text) <= len(session.history):
            return ResumeSurvey(session.history[int(text) - 1].id)
        return None

    return None


def print_agent_reply(output):
    print_separator("-", 80)
    print(output['message']['content'] or "No content")
    print_separator("-", 80)
    usage = output.get('usage') or {}
    if usage.get('total_tokens'):
        print(f"[{usage['total_tokens']} tokens]")


def run_agent_chat(client):
    """
    Free-form chat with the agent until :back or an empty line.

    Context persists on the server between visits; :clear restarts it.
    """
    print("\nAgent chat (:clear to reset, :back or Enter to return)\n")
    while True:
        try:
            text = input("You> ").strip()
        except (KeyboardInterrupt, EOFError):
            print()
            return

        if not text or text.lower() == ":back":
            return

        try:
            if text.lower() == ":clear":
                client.clear_agent_session()
                print("Session cleared.\n")
                continue
            print_agent_reply(client.agent_chat(text))
        except SurveyError as e:
            print(f"\n!! Agent chat failed: {e}\n")


def save_report(client, session):
    """Download the plain-text report into the working directory"""
    try:
        filename, content = client.get_report(session.survey_id)
    except SurveyError as e:
        print(f"\nCould not build report: {e}\n")
        return
    Path(filename).write_text(content, encoding='utf-8')
    print(f"\nReport saved: {filename}\n")


def show(result):
    """Render a transition result"""
    if result.notification:
        print(f"\n!! {result.notification.message}\n")

    session = result.session
    if session.phase == SessionPhase.PRESENTING_QUESTION:
        print_question(session)
    elif session.phase == SessionPhase.SUMMARIZED:
        if result.trail and result.trail[0] == SessionPhase.CHATTING and not result.failed:
            print(f"\nAssistant: {session.chat_history[-1].content}\n")
        elif not result.failed:
            print_summary(session)
    elif session.phase == SessionPhase.REVIEWING:
        print_rows(result.payload.get('rows', []))
    elif session.phase == SessionPhase.BROWSING_HISTORY:
        print_history(session)
    elif session.phase == SessionPhase.ROUND_COMPLETE and not result.failed:
        print(f"\n{len(session.answers)} answer(s) recorded.")


def build_client(local):
    if not local:
        return SurveyApiClient(config.API_URL)

    from app import build_service
    return InProcessSurveyClient(build_service())


def main():
    """Run console front end"""
    args = sys.argv[1:]
    local = "--local" in args
    links = [a for a in args if not a.startswith("--")]

    print_separator()
    print("SURVEY FLOW - CONSOLE")
    print_separator()

    try:
        client = build_client(local)
        resolver = DeepLinkResolver(client, min_length=config.DEEP_LINK_MIN_LENGTH)
        machine = SurveySessionMachine(client, resolver=resolver, toast_seconds=config.TOAST_SECONDS)
    except Exception as e:
        print(f"\nFailed to initialize: {e}")
        import traceback
        traceback.print_exc()
        return 1

    session = SurveySession()
    shared = ""

    if links:
        result = machine.handle(ResumeSurvey(links[0]), session)
        if isinstance(result, IllegalCommand):
            print(f"\nIgnoring link: {result.reason}\n")
        else:
            session = result.session
            show(result)

    while True:
        if session.share_fragment != shared:
            shared = session.share_fragment
            if shared:
                print(f"[Share link: #{shared}]")

        try:
            text = input(f"{prompt_for(session)}\n> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nInterrupted by user")
            break

        if text.lower() in QUIT_COMMANDS:
            break

        if text.lower() == ":chat":
            run_agent_chat(client)
            continue

        if text.lower() == ":report" and session.phase == SessionPhase.SUMMARIZED:
            save_report(client, session)
            continue

        command = command_for(text, session)
        if command is None:
            print("Not understood here.\n")
            continue

        result = machine.handle(command, session)
        if isinstance(result, IllegalCommand):
            print(f"\n{result.reason}\n")
            if session.phase == SessionPhase.PRESENTING_QUESTION:
                print_question(session)
            continue

        session = result.session
        show(result)

    print_separator()
    print("Goodbye")
    print_separator()
    return 0


if __name__ == '__main__':
    sys.exit(main())
