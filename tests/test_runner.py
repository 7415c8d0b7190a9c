import json
import zipfile

import pytest

import zn_local_runner
from conftest import API_ROOT, TOKEN, FakeResponse, listing, rec
from zn_api import ZnClient

ME = {"email": "ops@acme.test", "customer": {"id": "c0", "data": {"name": "Acme", "assumableCustomers": []}}}


@pytest.fixture
def run(monkeypatch, session, capsys):
    monkeypatch.setenv("API_KEY", TOKEN)
    monkeypatch.setenv("ZN_API_ROOT", API_ROOT)
    monkeypatch.setenv("ZN_POLL_INTERVAL", "0")
    monkeypatch.delenv("ZN_POLL_TIMEOUT", raising=False)
    monkeypatch.setattr(zn_local_runner, "ZnClient",
                        lambda settings, token: ZnClient(settings, token, session=session.fork()))
    monkeypatch.setattr(zn_local_runner.time, "sleep", lambda s: None)

    def _run(*argv):
        rc = zn_local_runner.main(list(argv))
        return rc, capsys.readouterr().out

    return _run


def test_whoami(run, session):
    session.ok("GET", "/accounts/me", ME)
    rc, out = run("whoami")
    assert rc == 0
    assert out.strip() == "ops@acme.test\tc0\tAcme"


def test_missing_api_key_exits_1(run, monkeypatch):
    monkeypatch.delenv("API_KEY")
    rc, out = run("whoami")
    assert rc == 1 and out == ""


def test_target_n_policy_creates_target_and_reuses_policy(run, session):
    session.ok("GET", "/accounts/me", ME)
    session.ok("GET", "/environments/env1", {"id": "env1", "data": {"type": "direct"}})
    session.ok("GET", "/targets", listing(rec("t0", "web-app-2")))
    session.ok("POST", "/targets", {"id": "t1", "data": {"name": "web-app"}})
    session.ok("GET", "/policies", listing(rec("p7", "Upload-Web")))

    rc, out = run("target-n-policy", "upload-web", "scn1", "env1", "web-app")

    assert rc == 0 and out.strip() == "p7"
    body = session.called("POST", "/targets")[0]["body"]
    assert body == {"name": "web-app", "environmentId": "env1", "environmentType": "direct",
                    "parameters": {"hostname": "dummy"}}
    assert session.called("POST", "/policies") == []


def test_target_n_policy_creates_manual_upload_policy(run, session):
    session.ok("GET", "/accounts/me", ME)
    session.ok("GET", "/environments/env1", {"id": "env1", "data": {"type": "artifact"}})
    session.ok("GET", "/targets", listing(rec("t1", "web-app")))
    session.ok("GET", "/policies", listing())
    session.ok("POST", "/policies", {"id": "p1", "data": {"name": "upload-web"}})

    rc, out = run("target-n-policy", "upload-web", "scn1", "env1", "web-app")

    assert rc == 0 and out.strip() == "p1"
    body = session.called("POST", "/policies")[0]["body"]
    assert body["policyType"] == "manualUpload" and body["policySite"] == "manual"
    assert body["targets"] == [{"id": "t1"}] and body["scenarioIds"] == ["scn1"]
    assert body["environmentId"] == "env1" and body["environmentType"] == "artifact"


def test_ambiguous_target_aborts(run, session):
    session.ok("GET", "/accounts/me", ME)
    session.ok("GET", "/environments/env1", {"id": "env1", "data": {"type": "artifact"}})
    session.ok("GET", "/targets", listing(rec("t1", "web-app"), rec("t2", "WEB-APP")))

    rc, out = run("target-n-policy", "upload-web", "scn1", "env1", "web-app")

    assert rc == 1 and out == ""
    assert session.called("POST", "/targets") == [] and session.called("GET", "/policies") == []


def test_policy_run_and_wait(run, session):
    session.ok("GET", "/policies/p1", {"id": "p1", "data": {"name": "veracode import"}})
    session.ok("POST", "/policies/p1/run", {"jobId": "j1"})
    session.ok("GET", "/jobs/j1", {"id": "j1", "data": {"status": "PENDING"}},
               {"id": "j1", "data": {"status": "RUNNING"}}, {"id": "j1", "data": {"status": "FINISHED"}})

    rc, out = run("policy-run", "p1", '{"appId":"123","buildId":"456"}', "--wait")

    assert rc == 0
    assert out.split() == ["j1", "FINISHED"]
    assert session.called("POST", "/policies/p1/run")[0]["body"] == {"options": {"runOptions": {"appId": "123", "buildId": "456"}}}
    assert len(session.called("GET", "/jobs/j1")) == 3


def test_policy_run_bad_json(run, session):
    rc, _ = run("policy-run", "p1", "{nope")
    assert rc == 1
    assert session.calls == []


def test_job_wait_failed_job_exits_1(run, session):
    session.ok("GET", "/jobs/j9", {"id": "j9", "data": {"status": "FAILED"}})
    rc, out = run("job-wait", "j9")
    assert rc == 1 and out.strip() == "FAILED"


def test_job_wait_timeout(run, session):
    session.ok("GET", "/jobs/j9", {"id": "j9", "data": {"status": "RUNNING"}})
    rc, out = run("--poll-timeout", "0", "job-wait", "j9")
    assert rc == 1 and out == ""
    assert len(session.called("GET", "/jobs/j9")) == 1


def test_upload_issues_nexusiq(run, session, tmp_path):
    report = tmp_path / "nexus.json"
    report.write_text(json.dumps({"components": [
        {"coordinates": {"artifactId": "a"}, "securityData": {"securityIssues": [{"id": "CVE-1"}]}},
        {"coordinates": {"artifactId": "b"}, "securityData": None},
    ]}))
    session.ok("GET", "/policies/p1", {"id": "p1", "data": {"name": "up", "policyType": "manualUpload"}})
    session.ok("POST", "/policies/p1/run", {"jobId": "j1"})
    session.add("POST", "/onprem/issues/j1", FakeResponse(200))
    session.add("POST", "/jobs/j1/resume", FakeResponse(200))
    session.ok("GET", "/jobs/j1", {"id": "j1", "data": {"status": "RUNNING"}}, {"id": "j1", "data": {"status": "FINISHED"}})

    rc, out = run("upload-issues", "p1", str(report))

    assert rc == 0 and out.split() == ["j1", "FINISHED"]
    name, content = session.called("POST", "/onprem/issues/j1")[0]["files"]["file"]
    uploaded = json.loads(content)
    assert [c["coordinates"]["artifactId"] for c in uploaded] == ["a"]
    order = [c["path"] for c in session.calls if c["method"] == "POST"]
    assert order == ["/policies/p1/run", "/onprem/issues/j1", "/jobs/j1/resume"]


def test_upload_issues_fortify_fpr(run, session, tmp_path):
    fpr = tmp_path / "scan.fpr"
    with zipfile.ZipFile(fpr, "w") as zf:
        zf.writestr("audit.fvdl", "<FVDL/>")
    session.ok("GET", "/policies/p1", {"id": "p1", "data": {"name": "up", "policyType": "manualUpload"}})
    session.ok("POST", "/policies/p1/run", {"jobId": "j1"})
    session.add("POST", "/onprem/issues/j1", FakeResponse(200))
    session.add("POST", "/jobs/j1/resume", FakeResponse(200))

    rc, out = run("upload-issues", "p1", str(fpr), "--no-wait")

    assert rc == 0 and out.strip() == "j1"
    assert session.called("POST", "/onprem/issues/j1")[0]["files"]["file"] == ("audit.fvdl", b"<FVDL/>")
    assert session.called("GET", "/jobs/j1") == []


def test_jobs_csv_and_resume(run, session):
    session.ok("GET", "/accounts/me", ME)
    session.ok("GET", "/jobs", listing(
        {"id": "j2", "meta": {"created": "2021-01-02T00:00:00.000Z"}, "data": {"status": "PENDING", "policyId": "p1", "policyName": "a"}},
        {"id": "j1", "meta": {"created": "2021-01-01T00:00:00.000Z"}, "data": {"status": "FINISHED", "policyId": "p1", "policyName": "a"}},
    ))
    session.add("POST", "/jobs/j2/resume", FakeResponse(200))

    rc, out = run("jobs", "2021-01-01", "NOW", "--status", "pending", "--resume")

    assert rc == 0
    lines = out.splitlines()
    assert lines[0].startswith("custName,startDateTime(UTC)")
    assert len(lines) == 2 and lines[1].startswith("Acme,2021-01-02 00:00:00")
    assert session.called("GET", "/jobs")[0]["params"] == {"limit": 100, "since": "2021-01-01"}
    assert len(session.called("POST", "/jobs/j2/resume")) == 1
    assert session.called("POST", "/jobs/j1/resume") == []


def test_policies_with_schedules(run, session):
    session.ok("GET", "/policies", listing({"id": "p1", "data": {
        "name": "nightly", "environmentType": "artifact",
        "targets": [{"id": "t1", "targetName": "web"}], "scenarios": [{"id": "s1", "name": "Snyk"}]}}))
    session.ok("GET", "/policies/p1/schedules", listing({"id": "sc1", "data": {"pattern": "0 2 * * *"}}))

    rc, out = run("policies", "--schedules")

    assert rc == 0
    assert out.splitlines() == ["polId|polName|tgtId|tgtName|tgtType|scenarioId|scenarioName|schedCount|schedCode",
                                "p1|nightly|t1|web|artifact|s1|Snyk|1|0 2 * * *"]


def test_rename_target(run, session):
    session.ok("GET", "/targets", listing(rec("t1", "old-name"), rec("t2", "old-name-2")))
    session.ok("GET", "/targets/t1", {"id": "t1", "data": {"name": "old-name", "includeRegex": None,
                                                          "notifications": {}, "parameters": {}}})
    session.ok("PUT", "/targets/t1", {"id": "t1"})

    rc, out = run("rename", "target", "old-name", "new-name")

    assert rc == 0 and out.strip() == "t1"
    assert session.called("PUT", "/targets/t1")[0]["body"] == {
        "name": "new-name", "includeRegex": [], "excludeRegex": [], "notifications": [], "parameters": {}}


def test_webhook_create(run, session):
    session.ok("GET", "/policies/p1", {"id": "p1", "data": {"name": "nightly"}})
    session.ok("POST", "/webhooks", {"id": "w1", "url": "https://hooks.zeronorth.io/abc"})

    rc, out = run("webhook-create", "p1")

    assert rc == 0 and out.strip() == "https://hooks.zeronorth.io/abc"
    assert session.called("POST", "/webhooks")[0]["body"] == {
        "isEnabled": True, "jobType": "policyRun", "jobData": {"policyId": "p1"}}


def test_webhook_unknown_policy(run, session):
    rc, out = run("webhook-create", "nope")
    assert rc == 1 and out == ""
    assert session.called("POST", "/webhooks") == []


def _me(name, cid, assumable=()):
    return {"email": "ops@acme.test", "customer": {"id": cid, "data": {"name": name, "assumableCustomers": list(assumable)}}}


def test_each_account_runs_command_per_customer(run, session):
    tok_a, tok_b = "a" * 1200, "b" * 1200
    session.ok("GET", "/accounts/me",
               _me("Root", "c0", [{"id": "cB", "name": "Bravo"}, {"id": "cA", "name": "Alpha"}]),
               _me("Alpha", "cA"), _me("Alpha", "cA"), _me("Bravo", "cB"), _me("Bravo", "cB"))
    session.ok("POST", "/accounts/assume", {"token_type": "Bearer", "id_token": tok_a},
               {"token_type": "Bearer", "id_token": tok_b})

    rc, out = run("each-account", "--", "whoami")

    assert rc == 0
    assert out.splitlines() == ["ops@acme.test\tcA\tAlpha", "ops@acme.test\tcB\tBravo"]
    assumes = session.called("POST", "/accounts/assume")
    assert [a["body"] for a in assumes] == [{"customerId": "cA"}, {"customerId": "cB"}]
    assert all(a["auth"] == TOKEN for a in assumes)
    assert [c["auth"] for c in session.called("GET", "/accounts/me")] == [TOKEN, tok_a, tok_a, tok_b, tok_b]


def test_each_account_aborts_on_wrong_customer(run, session):
    session.ok("GET", "/accounts/me", _me("Root", "c0", [{"id": "cA", "name": "Alpha"}, {"id": "cB", "name": "Bravo"}]),
               _me("Somebody Else", "cX"))
    session.ok("POST", "/accounts/assume", {"token_type": "Bearer", "id_token": "a" * 1200})

    rc, out = run("each-account", "whoami")

    assert rc == 1 and out == ""
    assert len(session.called("POST", "/accounts/assume")) == 1


def test_each_account_skips_failed_assume_and_reports_failure(run, session):
    session.ok("GET", "/accounts/me", _me("Root", "c0", [{"id": "cA", "name": "Alpha"}, {"id": "cB", "name": "Bravo"}]),
               _me("Bravo", "cB"), _me("Bravo", "cB"))
    session.ok("POST", "/accounts/assume", {"token_type": "Bearer", "id_token": "short"},
               {"token_type": "Bearer", "id_token": "b" * 1200})

    rc, out = run("each-account", "whoami")

    assert rc == 1
    assert out.splitlines() == ["ops@acme.test\tcB\tBravo"]


def test_each_account_include_root_uses_root_token(run, session):
    session.ok("GET", "/accounts/me", _me("Root", "c0"))

    rc, out = run("each-account", "--include-root", "--", "whoami")

    assert rc == 0
    assert out.strip() == "ops@acme.test\tc0\tRoot"
    assert session.called("POST", "/accounts/assume") == []


def test_resolve_create_with_attributes(run, session):
    session.ok("GET", "/applications", listing(rec("a1", "Shop Legacy")))
    session.ok("POST", "/applications", {"id": "a2", "data": {"name": "Shop"}})

    rc, out = run("resolve", "application", "Shop", "--create", "--attr", "description=web shop")

    assert rc == 0 and out.strip() == "a2\tShop"
    assert session.called("POST", "/applications")[0]["body"] == {"name": "Shop", "description": "web shop"}


def test_resolve_bad_attr(run, session):
    session.ok("GET", "/targets", listing())
    rc, _ = run("resolve", "target", "web", "--create", "--attr", "oops")
    assert rc == 1
    assert session.calls == []


def test_app_target_adds_target_and_keeps_risk_estimate(run, session):
    impact = {"financialDamage": 3, "reputationDamage": 2, "nonCompliance": 1, "privacyViolation": 0}
    session.ok("GET", "/targets", listing(rec("t1", "web")))
    session.ok("GET", "/applications", listing(rec("a1", "Shop")))
    session.ok("GET", "/applications/a1", {"id": "a1", "data": {
        "name": "Shop", "targetIds": ["t0"], "description": "web shop",
        "typeOfRiskEstimate": "business", "businessImpact": impact}})
    session.ok("PUT", "/applications/a1", {"id": "a1"})

    rc, out = run("app-target", "shop", "WEB")

    assert rc == 0 and out.strip() == "a1"
    assert session.called("GET", "/applications/a1")[0]["params"] == {"expand": "false"}
    assert session.called("PUT", "/applications/a1")[0]["body"] == {
        "name": "Shop", "targetIds": ["t0", "t1"], "description": "web shop",
        "typeOfRiskEstimate": "business", "businessImpact": impact}
    assert session.called("POST", "/applications") == []


def test_app_target_creates_application_with_target(run, session):
    session.ok("GET", "/targets", listing(rec("t1", "web")))
    session.ok("GET", "/applications", listing(rec("a1", "Shop Legacy")))
    session.ok("POST", "/applications", {"id": "a2", "data": {"name": "Shop"}})
    session.ok("GET", "/applications/a2", {"id": "a2", "data": {"name": "Shop", "targetIds": ["t1"]}})

    rc, out = run("app-target", "Shop", "web")

    assert rc == 0 and out.strip() == "a2"
    assert session.called("POST", "/applications")[0]["body"] == {"name": "Shop", "targetIds": ["t1"], "description": ""}
    assert session.called("PUT", "/applications/a2") == []


def test_app_target_unknown_target_aborts(run, session):
    session.ok("GET", "/targets", listing(rec("t1", "web-2")))

    rc, out = run("app-target", "Shop", "web")

    assert rc == 1 and out == ""
    assert [c["path"] for c in session.calls] == ["/targets"]


def test_targets_with_policies(run, session):
    session.ok("GET", "/accounts/me", ME)
    session.ok("GET", "/targets", listing({"id": "t1", "meta": {"created": "2021-02-03T04:05:06.789Z"},
                                           "data": {"name": "web", "environmentType": "artifact", "tags": ["prod", "eu"]}}))
    session.ok("GET", "/policies", listing({"id": "p1", "data": {"name": "sast", "scenarios": [{"name": "Fortify"}]}}))
    session.ok("GET", "/jobs", listing({"id": "j1", "meta": {"lastModified": "2021-03-01T00:00:00.000Z"},
                                        "data": {"status": "FINISHED"}}))

    rc, out = run("targets", "--policies")

    assert rc == 0
    assert out.splitlines() == [
        "Tenant|TargetID|TargetName|TargetCreated|TargetType|TargetTags|Status|PolicyId|PolicyName|Scanner",
        "Acme|t1|web|2021-02-03 04:05:06|artifact|prod,eu|Scanned|p1|sast|Fortify"]
    assert session.called("GET", "/policies")[0]["params"] == {"targetId": "t1"}
    assert session.called("GET", "/jobs")[0]["params"] == {"policyId": "p1", "limit": 1000}


def test_targets_jobs_needs_policies(run, session):
    rc, out = run("targets", "--jobs")
    assert rc == 1 and out == ""
    assert session.calls == []


def test_api_root_override_trailing_slash(run, session):
    session.ok("GET", "/accounts/me", ME)
    rc, out = run("--api-root", API_ROOT + "/", "whoami")
    assert rc == 0 and out.strip() == "ops@acme.test\tc0\tAcme"
    assert [c["path"] for c in session.calls] == ["/accounts/me"]


def test_bad_numeric_setting_exits_1(run, session, monkeypatch):
    monkeypatch.setenv("ZN_POLL_INTERVAL", "soon")
    rc, out = run("whoami")
    assert rc == 1 and out == ""
    assert session.calls == []
