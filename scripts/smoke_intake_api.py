"""
Intake API Smoke Test

Walks a running server through the intake flow and reports timings:
default template -> session -> answers -> completion -> job description.

Usage:
    python scripts/smoke_intake_api.py
    python scripts/smoke_intake_api.py --base-url http://localhost:8000 --api-key <key>
    python scripts/smoke_intake_api.py --generate  # Also call the LLM-backed job description endpoint
"""

import argparse
import time

import httpx

DEFAULT_BASE_URL = "http://127.0.0.1:8000"

SAMPLE_ANSWERS = {
    "textarea": "We are opening a second platform team to support growth.",
    "text": "Head of Engineering",
    "number": "5",
    "date": "2026-12-01",
}


def timed_request(client: httpx.Client, method: str, url: str, **kwargs) -> tuple[httpx.Response | None, float, str | None]:
    """Make a request and return (response, elapsed_seconds, error)."""
    start = time.time()
    try:
        response = getattr(client, method)(url, **kwargs)
        return response, time.time() - start, None
    except httpx.TimeoutException as e:
        elapsed = time.time() - start
        return None, elapsed, f"TIMEOUT after {elapsed:.1f}s: {e}"
    except httpx.HTTPError as e:
        return None, time.time() - start, f"HTTP ERROR: {e}"


def print_result(label: str, response: httpx.Response | None, elapsed: float, error: str | None):
    """Print formatted test result."""
    if error:
        print(f"  {'FAIL':<6} {label:<40} {elapsed:>7.2f}s  {error}")
        return
    status_icon = "OK" if response.status_code < 400 else "FAIL"
    print(f"  {status_icon:<6} {label:<40} {elapsed:>7.2f}s  HTTP {response.status_code}")
    if response.status_code >= 400:
        print(f"         Response: {response.text[:500]}")


def sample_answer(question: dict):
    if question.get("options"):
        first = question["options"][0]
        return [first] if question["kind"] == "multiselect" else first
    return SAMPLE_ANSWERS.get(question["kind"], "n/a")


def run_smoke_test(base_url: str, api_key: str | None, generate: bool):
    base_url = base_url.rstrip("/")
    headers = {"X-API-Key": api_key} if api_key else {}

    print(f"\n{'='*70}")
    print(f"  INTAKE API SMOKE TEST: {base_url}")
    print(f"{'='*70}\n")

    with httpx.Client(base_url=base_url, headers=headers, timeout=30.0) as client:
        resp, elapsed, err = timed_request(client, "get", "/health")
        print_result("/health", resp, elapsed, err)
        if err:
            return

        resp, elapsed, err = timed_request(client, "get", "/intake/templates/default")
        print_result("default template", resp, elapsed, err)
        if err or resp.status_code != 200:
            print("\n  ** No default template. Run: python scripts/seed_intake_templates.py")
            return
        template = resp.json()

        resp, elapsed, err = timed_request(client, "post", "/intake/sessions", json={
            "template_id": template["id"],
            "client_id": f"smoke-{int(time.time())}",
            "conducted_by": "smoke-test",
        })
        print_result("create session", resp, elapsed, err)
        if err or resp.status_code != 201:
            return
        session = resp.json()

        answers = {
            q["id"]: sample_answer(q)
            for q in session["template_snapshot"]["questions"]
            if q["required"]
        }
        resp, elapsed, err = timed_request(
            client, "post", f"/intake/sessions/{session['id']}/responses", json={"responses": answers}
        )
        print_result(f"record {len(answers)} required answers", resp, elapsed, err)

        resp, elapsed, err = timed_request(client, "post", f"/intake/sessions/{session['id']}/complete")
        print_result("complete session", resp, elapsed, err)
        if err or resp.status_code != 200:
            return

        if generate:
            with httpx.Client(base_url=base_url, headers=headers, timeout=300.0) as long_client:
                resp, elapsed, err = timed_request(
                    long_client, "post", f"/intake/sessions/{session['id']}/job-description"
                )
                print_result("generate job description", resp, elapsed, err)
                if resp is not None and resp.status_code == 200:
                    content = resp.json()["content"]
                    print(f"         Title: {content.get('title')} ({resp.json()['attempts']} attempt(s))")

        resp, elapsed, err = timed_request(client, "delete", f"/intake/sessions/{session['id']}")
        print_result("delete session", resp, elapsed, err)


def main():
    parser = argparse.ArgumentParser(description="Smoke test a running intake API")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL, help=f"API base URL (default: {DEFAULT_BASE_URL})")
    parser.add_argument("--api-key", default=None, help="API key (X-API-Key)")
    parser.add_argument("--generate", action="store_true", help="Also generate a job description")
    args = parser.parse_args()

    run_smoke_test(args.base_url, args.api_key, args.generate)


if __name__ == "__main__":
    main()
