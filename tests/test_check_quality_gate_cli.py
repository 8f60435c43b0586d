import tempfile
import unittest
from pathlib import Path
from unittest import mock

from qualitygate.domain import QualityVerdict
from qualitygate.errors import GateTimeoutError
from tools import check_quality_gate as cli
from tools.sonar.report import build_report
from tools.sonar.runner import GateOutcome


def _outcome(status: str, *, enforced: bool = True, exit_code: int = 1) -> GateOutcome:
    report = build_report(QualityVerdict(status=status), "acme:web")
    return GateOutcome(
        status=status,
        expected="OK",
        enforced=enforced,
        report=report,
        dashboard_url="https://sonar.example.com/dashboard?id=acme:web",
        gate_error_exit_code=exit_code,
    )


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        # Points at a file that does not exist so a developer's .env never leaks in.
        self.env_file = str(Path(self._td.name) / ".env")
        patcher = mock.patch.dict("os.environ", {}, clear=True)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._td.cleanup)

    def test_missing_token_exits_one(self) -> None:
        with mock.patch.object(cli, "execute") as execute:
            code = cli.main(["--env-file", self.env_file, "--project-key", "acme/web"])
        self.assertEqual(1, code)
        execute.assert_not_called()

    def test_flags_reach_the_run_configuration(self) -> None:
        with mock.patch.object(cli, "execute", return_value=_outcome("OK")) as execute:
            code = cli.main([
                "--env-file", self.env_file,
                "--token", "tok",
                "--host", "https://sonar.example.com/",
                "--project-key", "acme/web",
                "--pr-key", "17",
                "--quality-gate-enabled", "false",
                "--qualitygate-timeout", "90",
                "--level", "debug",
            ])

        self.assertEqual(0, code)
        cfg = execute.call_args.args[0]
        self.assertEqual("https://sonar.example.com", cfg.host)
        self.assertEqual("acme:web", cfg.project_key)
        self.assertEqual("17", cfg.pull_request)
        self.assertFalse(cfg.gate_enabled)
        self.assertEqual(90.0, cfg.gate_timeout)
        self.assertEqual("DEBUG", cfg.log_level)

    def test_pr_key_flag_selects_pull_request_target(self) -> None:
        with mock.patch.object(cli, "execute", return_value=_outcome("OK")) as execute:
            code = cli.main([
                "--env-file", self.env_file,
                "--token", "tok",
                "--skip-scan",
                "--project-key", "acme/web",
                "--pr-key", "17",
            ])

        self.assertEqual(0, code)
        cfg = execute.call_args.args[0]
        self.assertTrue(cfg.skip_scan)
        self.assertEqual("17", cfg.pull_request)
        self.assertEqual({"pullRequest": "17", "projectKey": "acme:web"}, cfg.scan_target().query_params())

    def test_every_flag_maps_to_a_config_field(self) -> None:
        from tools.sonar.config import GateConfig

        args = cli.parse_args([])
        fields = set(GateConfig.__dataclass_fields__)
        self.assertEqual([], sorted(set(cli._overrides(args)) - fields))

    def test_environment_is_read_when_flags_are_absent(self) -> None:
        with mock.patch.dict("os.environ", {"PLUGIN_SONAR_TOKEN": "tok", "PLUGIN_TASKID": "T1"}):
            with mock.patch.object(cli, "execute", return_value=_outcome("OK")) as execute:
                cli.main(["--env-file", self.env_file])
        self.assertEqual("T1", execute.call_args.args[0].task_id)

    def test_failing_gate_uses_configured_exit_code(self) -> None:
        with mock.patch.object(cli, "execute", return_value=_outcome("ERROR", exit_code=4)):
            code = cli.main(["--env-file", self.env_file, "--token", "tok"])
        self.assertEqual(4, code)

    def test_disabled_gate_exits_zero(self) -> None:
        with mock.patch.object(cli, "execute", return_value=_outcome("ERROR", enforced=False)):
            code = cli.main(["--env-file", self.env_file, "--token", "tok"])
        self.assertEqual(0, code)

    def test_no_verdict_exits_one(self) -> None:
        with mock.patch.object(cli, "execute", side_effect=GateTimeoutError("too slow")):
            code = cli.main(["--env-file", self.env_file, "--token", "tok"])
        self.assertEqual(1, code)


if __name__ == "__main__":
    unittest.main()
