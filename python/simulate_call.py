#!/usr/bin/env python3
"""
Synthetic Voice Call Simulator.

Starts a call on the PrepWise service and replays the provider events a
browser would forward during a real call: call-start, speech and
transcript messages, then call-end. Prints the completion outcome and
the toasts the user would have seen.

Usage:
    # Start the service first:
    uvicorn prepwise_server:create_app --factory --port 8000

    # In another terminal, run the simulator:
    python simulate_call.py

    # Interview mode against a stored interview:
    python simulate_call.py --mode interview --interview-id 3f2a9c0d1e4b5a6c7d8e
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Any, Final

import httpx

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger: logging.Logger = logging.getLogger(__name__)


# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS: Final[int] = 0
EXIT_CONNECTION_ERROR: Final[int] = 1
EXIT_SERVICE_UNHEALTHY: Final[int] = 2
EXIT_SESSION_ERROR: Final[int] = 3
EXIT_INTERRUPTED: Final[int] = 130  # Standard SIGINT exit code


# =============================================================================
# Configuration
# =============================================================================

DEFAULT_SERVER_URL: Final[str] = "http://127.0.0.1:8000"
DEFAULT_USER_NAME: Final[str] = "Sarah Chen"
DEFAULT_USER_ID: Final[str] = "user_simulated"

DEFAULT_SETTINGS: Final[dict[str, Any]] = {
    "jobRole": "Backend Engineer",
    "experienceLevel": "Senior",
    "techStack": "Python, PostgreSQL, AWS",
    "questionType": "Technical",
    "numberOfQuestions": 5,
}

PAUSE_BETWEEN_MESSAGES_S: Final[float] = 0.2


# =============================================================================
# Synthetic Conversations
# =============================================================================

GENERATE_SCRIPT = [
    ("assistant", "Hi Sarah! Let's prepare your interview. What role are you practicing for?"),
    ("user", "The role is senior backend engineer."),
    ("assistant", "Great. Which technologies should the questions cover?"),
    ("user", "Mostly Python and PostgreSQL, with some AWS."),
    ("assistant", "Should the focus be technical, behavioral, or mixed?"),
    ("user", "Technical please, and let's do 5 questions."),
    ("assistant", "Perfect. I'm generating your interview now. Thanks for calling!"),
]

INTERVIEW_SCRIPT = [
    ("assistant", "Hello Sarah, thanks for joining. Can you tell me about your background?"),
    ("user", "I've spent six years building Python services, most recently a payments API on AWS."),
    ("assistant", "How do you approach database migrations on a live system?"),
    ("user", "I split them into expand and contract steps so old and new code can run side by side."),
    ("assistant", "Thanks Sarah, that's all the questions I have. Good luck!"),
]


# =============================================================================
# Event Generation
# =============================================================================


def generate_transcript_message(role: str, text: str, final: bool = True) -> dict[str, Any]:
    """
    Build a provider `message` payload for one transcript fragment.

    Args:
        role: Speaker role (user or assistant).
        text: Transcript text.
        final: Whether the fragment is final or partial.
    """
    return {
        "type": "transcript",
        "transcriptType": "final" if final else "partial",
        "role": role,
        "transcript": text,
    }


def generate_function_result(success: bool, error: str | None = None) -> dict[str, Any]:
    """Build a provider `function-call-result` message."""
    result: dict[str, Any] = {"success": success}
    if error:
        result["error"] = error
    return {
        "type": "function-call-result",
        "functionCallResult": {"name": "generate_interview", "result": result},
    }


async def send_event(
    client: httpx.AsyncClient, server_url: str, event: str, payload: Any = None
) -> dict[str, Any]:
    resp = await client.post(
        f"{server_url}/api/vapi/events",
        json={"event": event, "payload": payload},
    )
    if resp.status_code != 200:
        logger.warning("Event %s rejected (%d): %s", event, resp.status_code, resp.text)
        return {}
    return resp.json()


# =============================================================================
# Simulation Runner
# =============================================================================


async def run_simulation(
    server_url: str,
    mode: str,
    user_name: str,
    user_id: str,
    interview_id: str | None,
    function_success: bool,
) -> int:
    """
    Run one simulated call against the service.

    Returns:
        Exit code indicating success or failure.
    """
    script = GENERATE_SCRIPT if mode == "generate" else INTERVIEW_SCRIPT

    async with httpx.AsyncClient(timeout=120.0) as client:
        logger.info("Checking service health...")
        try:
            resp = await client.get(f"{server_url}/health")
            if resp.status_code != 200:
                logger.error("Service not healthy: %d", resp.status_code)
                return EXIT_SERVICE_UNHEALTHY
            logger.info("Service healthy: %s", resp.json())
        except httpx.ConnectError:
            logger.error("Cannot connect to service at %s. Is it running?", server_url)
            logger.error("Start it with: uvicorn prepwise_server:create_app --factory")
            return EXIT_CONNECTION_ERROR

        start_body: dict[str, Any] = {"mode": mode, "userName": user_name, "userId": user_id}
        if mode == "generate":
            start_body["settings"] = DEFAULT_SETTINGS
        else:
            start_body["interviewId"] = interview_id

        logger.info("\n%s", "=" * 60)
        logger.info("Starting %s call for: %s", mode, user_name)
        logger.info("%s\n", "=" * 60)

        try:
            resp = await client.post(f"{server_url}/session/start", json=start_body)
        except httpx.RequestError as exc:
            logger.error("Failed to start call: %s", exc)
            return EXIT_SESSION_ERROR

        if resp.status_code != 200:
            logger.error("Failed to start call (%d): %s", resp.status_code, resp.text)
            return EXIT_SESSION_ERROR

        session_data: dict[str, Any] = resp.json()
        logger.info("Call started: %s (%s)", session_data.get("session_id"), session_data.get("status"))

        await send_event(client, server_url, "call-start")

        for i, (role, text) in enumerate(script, 1):
            truncated_text = f"{text[:80]}..." if len(text) > 80 else text
            logger.info("[%d/%d] %s: %s", i, len(script), role, truncated_text)

            await send_event(client, server_url, "speech-start")
            partial = " ".join(text.split()[:3])
            await send_event(
                client, server_url, "message", generate_transcript_message(role, partial, final=False)
            )
            await send_event(client, server_url, "message", generate_transcript_message(role, text))
            await send_event(client, server_url, "speech-end")
            await asyncio.sleep(PAUSE_BETWEEN_MESSAGES_S)

        if mode == "generate" and function_success:
            await send_event(client, server_url, "message", generate_function_result(True))
            logger.info("Function call result sent (success)")

        logger.info("Ending call, waiting for completion...")
        end_data = await send_event(client, server_url, "call-end")
        outcome = end_data.get("outcome") or {}

        logger.info("\n%s", "=" * 60)
        logger.info("Call simulation complete!")
        logger.info("%s", "=" * 60)
        logger.info("Action: %s", outcome.get("action"))
        logger.info("Redirect: %s", outcome.get("redirect_to"))
        logger.info("Refresh: %s", outcome.get("refresh"))
        if outcome.get("detail"):
            logger.info("Detail: %s", outcome.get("detail"))

        status_resp = await client.get(f"{server_url}/session/status")
        toasts: list[dict[str, Any]] = status_resp.json().get("toasts", [])
        for toast in toasts:
            if toast.get("kind") == "dismiss":
                continue
            description = f" - {toast['description']}" if toast.get("description") else ""
            logger.info("Toast [%s] %s%s", toast.get("kind"), toast.get("title"), description)

    return EXIT_SUCCESS


def main(
    server_url: str | None = None,
    mode: str = "generate",
    user_name: str | None = None,
    user_id: str | None = None,
    interview_id: str | None = None,
    function_success: bool = False,
) -> int:
    """
    Main entry point for the call simulator.

    Returns:
        Exit code indicating success or failure.
    """
    resolved_server_url = server_url or os.environ.get("SERVER_URL", DEFAULT_SERVER_URL)
    resolved_user_name = user_name or os.environ.get("USER_NAME", DEFAULT_USER_NAME)
    resolved_user_id = user_id or os.environ.get("USER_ID", DEFAULT_USER_ID)

    if mode == "interview" and not interview_id:
        logger.error("--interview-id is required in interview mode")
        return EXIT_SESSION_ERROR

    logger.info("=" * 60)
    logger.info("PrepWise Call Simulator")
    logger.info("=" * 60)
    logger.info("Target: %s", resolved_server_url)
    logger.info("User: %s (%s)", resolved_user_name, resolved_user_id)
    logger.info("Mode: %s", mode)
    logger.info("")

    try:
        return asyncio.run(
            run_simulation(
                server_url=resolved_server_url,
                mode=mode,
                user_name=resolved_user_name,
                user_id=resolved_user_id,
                interview_id=interview_id,
                function_success=function_success,
            )
        )
    except KeyboardInterrupt:
        logger.info("\nSimulation interrupted")
        return EXIT_INTERRUPTED


def cli() -> None:
    """Command-line interface entry point with argument parsing."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Simulate a voice call by replaying provider events to the service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Generation call, transcript fallback path
    python simulate_call.py

    # Generation call where the provider's function call succeeded
    python simulate_call.py --function-success

    # Interview call for a stored interview
    python simulate_call.py --mode interview --interview-id <id>

Environment Variables:
    SERVER_URL   Service URL (default: http://127.0.0.1:8000)
    USER_NAME    Participant name (default: Sarah Chen)
    USER_ID      Participant id (default: user_simulated)
        """,
    )

    parser.add_argument(
        "--server-url",
        type=str,
        default=None,
        help=f"Service URL (default: {DEFAULT_SERVER_URL})",
    )
    parser.add_argument(
        "--mode",
        choices=("generate", "interview"),
        default="generate",
        help="Call mode (default: generate)",
    )
    parser.add_argument("--user-name", type=str, default=None, help="Participant name")
    parser.add_argument("--user-id", type=str, default=None, help="Participant id")
    parser.add_argument(
        "--interview-id",
        type=str,
        default=None,
        help="Stored interview id (interview mode)",
    )
    parser.add_argument(
        "--function-success",
        action="store_true",
        help="Send a successful function-call result before ending (generate mode)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    exit_code = main(
        server_url=args.server_url,
        mode=args.mode,
        user_name=args.user_name,
        user_id=args.user_id,
        interview_id=args.interview_id,
        function_success=args.function_success,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
