#!/usr/bin/env python3
"""
Command line tool for placing an outbound call through a running Voice Bridge server.

Arguments not given on the command line are asked for interactively.

Usage:
    python outbound_call.py [--number +1234567890] [--prompt TEXT] [--server URL] [--defer]
"""

import argparse
import logging
import os
from typing import Any, Dict, Optional

import dotenv
import requests

dotenv.load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("outbound_call")

DEFAULT_SERVER_URL = os.getenv("SERVER_URL", "http://localhost:8000")


def make_outbound_call(
    server_url: str,
    phone_number: str,
    system_prompt: Optional[str] = None,
    agent_name: Optional[str] = None,
    defer_connect: bool = False,
) -> Optional[Dict[str, Any]]:
    """
    Ask the server to place a call.

    Returns:
        The server's JSON response on success, None otherwise
    """
    body: Dict[str, Any] = {"destinationNumber": phone_number, "deferConnect": defer_connect}
    if system_prompt:
        body["systemPrompt"] = system_prompt
    if agent_name:
        body["agentName"] = agent_name

    logger.info(f"Initiating call to {phone_number}...")
    try:
        response = requests.post(f"{server_url.rstrip('/')}/outgoing", json=body, timeout=30)
    except requests.RequestException as e:
        logger.error(f"Error making API request: {e}")
        return None

    try:
        data = response.json()
    except ValueError:
        logger.error(f"Server returned a non-JSON response ({response.status_code})")
        return None

    if response.status_code != 200:
        logger.error(f"Failed to initiate call: {data.get('error')}")
        if data.get("message"):
            logger.error(data["message"])
        return None

    print("Call initiated successfully!")
    print(f"Call SID: {data.get('callSid')}")
    return data


def prompt_for_number() -> str:
    while True:
        phone_number = input("Enter phone number to call (e.g., +1234567890): ").strip()
        if phone_number:
            return phone_number
        print("Phone number is required")


def main():
    parser = argparse.ArgumentParser(description="Place an outbound call through the Voice Bridge")
    parser.add_argument("--server", default=DEFAULT_SERVER_URL,
                        help=f"Server URL (default: {DEFAULT_SERVER_URL})")
    parser.add_argument("--number", help="Destination phone number in E.164 format")
    parser.add_argument("--prompt", help="System prompt for the call")
    parser.add_argument("--agent-name", help="Persona name the agent uses")
    parser.add_argument("--defer", action="store_true",
                        help="Create the AI session only once the callee answers")
    args = parser.parse_args()

    print("=== Voice Bridge Outbound Call Tool ===")
    phone_number = args.number or prompt_for_number()
    system_prompt = args.prompt
    if system_prompt is None and args.number is None:
        system_prompt = input("Enter system prompt (or press Enter for default): ").strip() or None

    make_outbound_call(args.server, phone_number, system_prompt, args.agent_name, args.defer)


if __name__ == "__main__":
    main()
