import json
import tempfile
import unittest
from pathlib import Path
from typing import Dict

from qualitygate.errors import AuthError, DecodeError, GateFailedError, GateTimeoutError
from qualitygate.io.report_task import REPORT_TASK_RELPATH
from sonar_fakes import (
    SCENARIO_CONDITIONS,
    FakeResponse,
    FakeSession,
    SimClock,
    gate_payload,
    task_payload,
)
from tools.sonar.config import GateConfig
from tools.sonar.report import parse_junit_counts
from tools.sonar.runner import ASSUMED_STATUS, execute
from tools.sonar.transport import SonarHttpClient

HOST = "https://sonar.example.com"


class SonarServer:
    """Routes fake requests by endpoint."""

    def __init__(self, *, task_statuses=("SUCCESS",), gate=None, analyses=None, component_key="my_project") -> None:
        self.component_key = component_key
        self.task_statuses = list(task_statuses)
        self.gate = gate if gate is not None else gate_payload("OK")
        self.analyses = analyses if analyses is not None else {"analyses": [{"key": "AN-latest"}]}

    def __call__(self, url, params, headers):
        if "/api/ce/task" in url:
            status = self.task_statuses.pop(0) if len(self.task_statuses) > 1 else self.task_statuses[0]
            payload = task_payload(status, task_id="AX-task", analysis_id="AN-fresh")
            if self.component_key:
                payload["task"]["componentKey"] = self.component_key
            else:
                payload["task"].pop("componentKey")
            return FakeResponse(200, payload)
        if "/api/qualitygates/project_status" in url:
            return FakeResponse(200, self.gate)
        if "/api/project_analyses/search" in url:
            return FakeResponse(200, self.analyses)
        return FakeResponse(404, "not found")


class RunnerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.workspace = Path(self._td.name)
        self.environ: Dict[str, str] = {}
        self.clock = SimClock()

    def tearDown(self) -> None:
        self._td.cleanup()

    def write_descriptor(self, server_url: str = HOST) -> None:
        path = self.workspace / REPORT_TASK_RELPATH
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            "projectKey=acme:web\n"
            f"serverUrl={server_url}\n"
            "ceTaskId=AX-task\n"
            f"ceTaskUrl={server_url}/api/ce/task?id=AX-task\n",
            encoding="utf-8",
        )

    def config(self, **kw) -> GateConfig:
        base = dict(host=HOST, token="tok", workspace=str(self.workspace))
        base.update(kw)
        return GateConfig(**base)

    def run_gate(self, cfg: GateConfig, session: FakeSession):
        return execute(
            cfg,
            client=SonarHttpClient(session=session),
            environ=self.environ,
            clock=self.clock,
            sleep=self.clock.sleep,
        )


class TestFreshScan(RunnerTestCase):
    def test_failing_gate_is_an_outcome_not_an_error(self) -> None:
        self.write_descriptor()
        server = SonarServer(task_statuses=("PENDING", "IN_PROGRESS", "SUCCESS"),
                             gate=gate_payload("ERROR", SCENARIO_CONDITIONS))
        session = FakeSession(handler=server)

        outcome = self.run_gate(self.config(), session)

        self.assertEqual("ERROR", outcome.status)
        self.assertFalse(outcome.passed)
        self.assertEqual(1, outcome.exit_code)
        self.assertEqual(f"{HOST}/dashboard?id=acme:web", outcome.dashboard_url)
        self.assertEqual({"analysisId": "AN-fresh"}, session.calls[-1]["params"])
        self.assertEqual(4, len(session.calls))
        self.assertTrue(all(r.closed for r in session.served))

        self.assertEqual("50.00", self.environ["SONAR_RESULT_SUCCESS_RATE"])
        self.assertEqual("1", self.environ["SONAR_RESULT_NEW_ERRORS"])

        junit = self.workspace / "sonarResults.xml"
        self.assertEqual(junit, outcome.junit_path)
        self.assertEqual((2, 1), parse_junit_counts(junit.read_text(encoding="utf-8")))

    def test_passing_gate_exits_zero(self) -> None:
        self.write_descriptor()
        outcome = self.run_gate(self.config(), FakeSession(handler=SonarServer()))
        self.assertTrue(outcome.passed)
        self.assertEqual(0, outcome.exit_code)

    def test_disabled_enforcement_and_custom_exit_code(self) -> None:
        self.write_descriptor()
        failing = SonarServer(gate=gate_payload("ERROR", SCENARIO_CONDITIONS))

        relaxed = self.run_gate(self.config(gate_enabled=False), FakeSession(handler=failing))
        self.assertEqual(0, relaxed.exit_code)

        strict = self.run_gate(self.config(gate_error_exit_code=3), FakeSession(handler=failing))
        self.assertEqual(3, strict.exit_code)

    def test_expected_status_is_exact_match(self) -> None:
        self.write_descriptor()
        warn = SonarServer(gate=gate_payload("WARN"))
        self.assertEqual(0, self.run_gate(self.config(expected_status="WARN"), FakeSession(handler=warn)).exit_code)
        self.assertEqual(1, self.run_gate(self.config(expected_status="ok"), FakeSession(handler=warn)).exit_code)

    def test_descriptor_server_url_is_used(self) -> None:
        self.write_descriptor(server_url="https://other.example.com")
        session = FakeSession(handler=SonarServer())

        outcome = self.run_gate(self.config(), session)

        self.assertTrue(all(c["url"].startswith("https://other.example.com/") for c in session.calls))
        self.assertTrue(outcome.dashboard_url.startswith("https://other.example.com/dashboard"))

    def test_branch_shows_in_dashboard_link(self) -> None:
        self.write_descriptor()
        outcome = self.run_gate(self.config(branch="feature/x"), FakeSession(handler=SonarServer()))
        self.assertEqual(f"{HOST}/dashboard?id=acme:web&branch=feature/x", outcome.dashboard_url)
        self.assertEqual(outcome.dashboard_url, outcome.report.suite_name)

    def test_no_wait_assumes_pass_without_requests(self) -> None:
        self.write_descriptor()
        session = FakeSession([])

        outcome = self.run_gate(self.config(wait_quality_gate=False), session)

        self.assertEqual(ASSUMED_STATUS, outcome.status)
        self.assertIsNone(outcome.verdict)
        self.assertEqual([], session.calls)
        self.assertEqual("0", self.environ["SONAR_RESULT_TOTAL"])

    def test_missing_descriptor_is_fatal(self) -> None:
        with self.assertRaises(DecodeError):
            self.run_gate(self.config(), FakeSession([]))
        self.assertFalse((self.workspace / "sonarResults.xml").exists())

    def test_timeout_is_distinct_from_failing_gate(self) -> None:
        self.write_descriptor()
        never = SonarServer(task_statuses=("IN_PROGRESS",))

        with self.assertRaises(GateTimeoutError):
            self.run_gate(self.config(gate_timeout=5), FakeSession(handler=never))

        self.assertEqual(5.0, self.clock.elapsed)
        self.assertEqual({}, self.environ)

    def test_task_error_is_fatal(self) -> None:
        self.write_descriptor()
        with self.assertRaises(GateFailedError):
            self.run_gate(self.config(), FakeSession(handler=SonarServer(task_statuses=("ERROR",))))

    def test_verdict_json_written_when_configured(self) -> None:
        self.write_descriptor()
        self.run_gate(
            self.config(verdict_json_path="out/verdict.json"),
            FakeSession(handler=SonarServer(gate=gate_payload("ERROR", SCENARIO_CONDITIONS))),
        )

        data = json.loads((self.workspace / "out" / "verdict.json").read_text(encoding="utf-8"))
        self.assertEqual("ERROR", data["projectStatus"]["status"])
        self.assertEqual(2, data["summary"]["total"])
        self.assertEqual(f"{HOST}/dashboard?id=acme:web", data["dashboard"])


class TestSkipScan(RunnerTestCase):
    def test_latest_analysis_of_project(self) -> None:
        session = FakeSession(handler=SonarServer(gate=gate_payload("OK", SCENARIO_CONDITIONS[:1])))

        outcome = self.run_gate(self.config(skip_scan=True, project_key="acme:web"), session)

        self.assertTrue(outcome.passed)
        self.assertEqual({"project": "acme:web", "ps": 1}, session.calls[0]["params"])
        self.assertEqual({"analysisId": "AN-latest"}, session.calls[1]["params"])
        self.assertEqual("100.00", self.environ["SONAR_RESULT_SUCCESS_RATE"])

    def test_pull_request_target_is_looked_up_directly(self) -> None:
        session = FakeSession(handler=SonarServer(gate=gate_payload("ERROR", SCENARIO_CONDITIONS)))

        outcome = self.run_gate(self.config(skip_scan=True, project_key="acme:web", pull_request="17"), session)

        self.assertEqual(1, len(session.calls))
        self.assertEqual({"pullRequest": "17", "projectKey": "acme:web"}, session.calls[0]["params"])
        self.assertEqual("ERROR", outcome.status)
        self.assertEqual(f"{HOST}/dashboard?id=acme:web&pullRequest=17", outcome.dashboard_url)

    def test_forced_query_type_uses_latest_analysis_then_target_query(self) -> None:
        session = FakeSession(handler=SonarServer())

        self.run_gate(
            self.config(skip_scan=True, project_key="acme:web", branch="main", gate_query="branch"),
            session,
        )

        self.assertEqual({"branch": "main", "projectKey": "acme:web"}, session.calls[-1]["params"])

    def test_no_analyses_is_fatal(self) -> None:
        from qualitygate.errors import EmptyResultError

        session = FakeSession(handler=SonarServer(analyses={"analyses": []}))
        with self.assertRaises(EmptyResultError):
            self.run_gate(self.config(skip_scan=True, project_key="acme:web"), session)

    def test_auth_rejected_is_fatal(self) -> None:
        session = FakeSession([FakeResponse(401), FakeResponse(403)])
        with self.assertRaises(AuthError):
            self.run_gate(self.config(skip_scan=True, project_key="acme:web"), session)


class TestExplicitTask(RunnerTestCase):
    def test_waits_on_configured_task(self) -> None:
        session = FakeSession(handler=SonarServer(task_statuses=("PENDING", "SUCCESS")))

        outcome = self.run_gate(self.config(task_id="AX-task", project_key="acme:web"), session)

        self.assertTrue(outcome.passed)
        self.assertEqual(f"{HOST}/api/ce/task?id=AX-task", session.calls[0]["url"])
        self.assertEqual({"analysisId": "AN-fresh"}, session.calls[-1]["params"])
        self.assertEqual(3, len(session.calls))

    def test_project_comes_from_task_when_key_not_configured(self) -> None:
        session = FakeSession(handler=SonarServer(component_key="acme:api"))

        outcome = self.run_gate(self.config(task_id="AX-task", branch="develop"), session)

        self.assertEqual(f"{HOST}/dashboard?id=acme:api&branch=develop", outcome.dashboard_url)
        self.assertEqual("acme:api", outcome.report.package)
        junit = (self.workspace / "sonarResults.xml").read_text(encoding="utf-8")
        self.assertIn('package="acme:api"', junit)

    def test_task_without_project_and_no_key_is_config_error(self) -> None:
        from qualitygate.errors import ConfigError

        session = FakeSession(handler=SonarServer(component_key=None))
        with self.assertRaises(ConfigError):
            self.run_gate(self.config(task_id="AX-task"), session)
        self.assertFalse((self.workspace / "sonarResults.xml").exists())


class TestFreshScanWithoutProjectKey(RunnerTestCase):
    def test_descriptor_without_project_uses_task_component(self) -> None:
        path = self.workspace / REPORT_TASK_RELPATH
        path.parent.mkdir(parents=True)
        path.write_text(f"serverUrl={HOST}\nceTaskId=AX-task\n", encoding="utf-8")

        outcome = self.run_gate(self.config(), FakeSession(handler=SonarServer()))

        self.assertEqual(f"{HOST}/dashboard?id=my_project", outcome.dashboard_url)


if __name__ == "__main__":
    unittest.main()
