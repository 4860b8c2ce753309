"""
Main entry point for the Intake Meeting engine.

Walks a recruiter through the default intake template on the console,
completes the session, and generates a job description from the answers.
"""

import json
import logging

from sqlmodel import Session

from config.settings import settings
from seed.intake_template_seed import seed_default_template
from services import IntakeGenerationService, IntakeMeetingSessionService, IntakeMeetingTemplateService
from utils.database import get_engine, init_db
from utils.exceptions import IncompleteSessionError, GenerationFailedError, ValidationError


def main():
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    print("=" * 80)
    print("Intake Meeting - Role Discussion")
    print("=" * 80)
    print()

    # Initialize database
    init_db()

    with Session(get_engine()) as db_session:
        seed_default_template(db_session)
        template = IntakeMeetingTemplateService(db_session).get_default_template()

        session_service = IntakeMeetingSessionService(db_session)
        client_id = input("Client: ").strip() or "demo-client"
        conducted_by = input("Recruiter: ").strip() or "recruiter"
        session = session_service.create_session(template.id, client_id, conducted_by)

        print(f"\nSession {session.id} started from '{template.name}'")
        print("Press Enter to skip a question, type 'quit' to stop.\n")

        current_section = None
        for question in session.snapshot.questions:
            if question.section != current_section:
                current_section = question.section
                print("-" * 80)
                print(current_section.upper())
                print("-" * 80)

            marker = " *" if question.required else ""
            if question.options:
                print(f"Options: {', '.join(question.options)}")

            while True:
                answer = input(f"{question.question}{marker}\n> ").strip()
                if answer.lower() == "quit":
                    break
                value = [a.strip() for a in answer.split(",")] if question.kind == "multiselect" and answer else answer
                try:
                    session_service.record_response(session.id, question.id, value)
                    break
                except ValidationError as e:
                    print(f"  ! {e.message}")
            if answer.lower() == "quit":
                break
            print()

        try:
            session = session_service.complete_session(session.id)
        except IncompleteSessionError as e:
            print(f"\n{len(e.missing_question_ids)} required question(s) unanswered; marking for follow-up.")
            session_service.mark_follow_up(session.id, ["Collect the remaining required answers"])
            return

        print("\nSession completed. Generating job description...\n")
        try:
            artifact = IntakeGenerationService(db_session).generate_job_description(session.id)
        except GenerationFailedError as e:
            print(f"Generation failed: {e.message}")
            return

        print(json.dumps(artifact.content, indent=2))


if __name__ == "__main__":
    main()
