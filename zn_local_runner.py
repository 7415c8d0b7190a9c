#!/usr/bin/env python3
# zn_local_runner.py
#
# ZeroNorth operations runner
# Commands:
#   - whoami / resolve / rename
#   - app-target (look up or create an Application, add a Target to it)
#   - target-n-policy (look up or create a Target + manual upload Policy)
#   - policy-run / job-wait / upload-issues (run -> [upload -> resume] -> poll)
#   - jobs (CSV, optional bulk resume) / policies, targets (pipe-delimited or .xlsx)
#   - webhook-create
#   - each-account (repeat any of the above for every assumable customer)
#
# Logs go to STDERR with timestamps, results to STDOUT.
#
# pip install: requests python-dotenv pandas openpyxl rich

import os, sys, time, argparse, json, logging, tempfile, zipfile
from typing import Dict, Any, Optional, List, Callable
from zn_api import (Settings, ZnClient, ZnError, CredentialError, ProtocolError,
                    load_settings, read_token, parse_list, record_name)
from zn_resolver import ResourceType, MatchMode, ResourceQuery, CreateSpec, resolve, get_by_id
from zn_poller import AsyncOperationHandle, OperationKind, await_completion, job_status_fetcher
from zn_reports import (JOB_COLUMNS, POLICY_COLUMNS, SCHEDULE_COLUMNS, TARGET_COLUMNS, TARGET_POLICY_COLUMNS,
                        TARGET_JOB_COLUMNS, job_rows, policy_row, target_row, target_policy_rows, write_table)

log = logging.getLogger("zn.runner")

MY_NAME = "zn-runner"
RESUME_DELAY = 3.0
SEPARATOR = "#" * 41
TYPE_CHOICES = {t.name.lower(): t for t in ResourceType}
RISK_IMPACT = {"technical": "technicalImpact", "business": "businessImpact"}


# ===== Logging / pretty UI
def _setup_logging(quiet: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else (logging.WARNING if quiet else logging.INFO)
    logging.basicConfig(stream=sys.stderr, level=level, force=True,
                        format="%(asctime)s  %(name)s  %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

def _start_progress(pretty: bool):
    if not pretty: return None
    from rich.console import Console
    from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, MofNCompleteColumn, TimeElapsedColumn
    progress = Progress(
        SpinnerColumn(style="cyan"),
        TextColumn("[bold cyan]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        transient=True,
        console=Console(stderr=True)
    )
    progress.start()
    return progress

def _stop_progress(progress, msg: str) -> None:
    if progress:
        progress.stop()
        progress.console.print(f"✅ [bold]{msg}[/]")


# ===== Client / polling helpers
def _client(settings: Settings, args, token: Optional[str] = None) -> ZnClient:
    if token is None:
        token = read_token(os.environ.get("API_KEY"), getattr(args, "key_file", None), settings.min_token_len)
    return ZnClient(settings, token)

def _wait_job(client: ZnClient, settings: Settings, job_id: str, retries: int = 0):
    handle = AsyncOperationHandle(job_id, OperationKind.JOB)
    return await_completion(job_status_fetcher(client), handle, settings.poll_interval,
                            timeout=settings.poll_timeout, retries=retries)

def _run_policy(client: ZnClient, policy_id: str, body: Optional[Dict[str,Any]] = None) -> str:
    log.info("Invoking Policy...")
    obj = client.post(f"/policies/{policy_id}/run", body=body)
    job_id = obj.get("jobId") if isinstance(obj, dict) else None
    if not job_id:
        raise ProtocolError(f"Failed to start the job: {str(obj)[:400]}")
    log.info("Job '%s' started.", job_id)
    return str(job_id)

def _policy(client: ZnClient, policy_id: str) -> Dict[str,Any]:
    pol = get_by_id(client, ResourceType.POLICY, policy_id)
    log.info("Policy with ID '%s' found: '%s'.", policy_id, record_name(pol))
    return pol

def _finish(status) -> int:
    print(status.raw)
    return 0 if status.ok else 1


# ===== Commands
def cmd_whoami(client: ZnClient, settings: Settings, args) -> int:
    me = client.me(); cust = me.get("customer") or {}
    log.info("Customer: '%s'", cust["data"]["name"])
    print("\t".join([me.get("email") or "", cust.get("id") or "", cust["data"]["name"]]))
    return 0

def cmd_resolve(client: ZnClient, settings: Settings, args) -> int:
    rtype = TYPE_CHOICES[args.type]
    query = ResourceQuery(rtype, args.name, MatchMode.SUBSTRING if args.substring else MatchMode.EXACT)
    spec = None
    if args.create:
        attrs = {}
        for kv in args.attr or []:
            k, sep, v = kv.partition("=")
            if not sep: raise ZnError(f"--attr expects key=value, got '{kv}'")
            attrs[k] = v
        spec = CreateSpec(rtype, args.name, args.parent, attrs)
    found = resolve(client, query, spec, settle=args.settle)
    print(f"{found.id}\t{found.name}")
    return 0

def cmd_target_n_policy(client: ZnClient, settings: Settings, args) -> int:
    me = client.me()
    log.info("Customer: '%s'", me["customer"]["data"]["name"])
    match = MatchMode.SUBSTRING if args.substring else MatchMode.EXACT

    # Integration type drives both create bodies.
    integ = get_by_id(client, ResourceType.INTEGRATION, args.integration_id)
    int_type = (integ.get("data") or {}).get("type")
    if not int_type:
        raise ProtocolError(f"Integration '{args.integration_id}' has no type.")
    log.info("Integration type is '%s'.", int_type)

    tgt_params = {"hostname": "dummy"} if int_type == "direct" else {}
    tgt = resolve(client, ResourceQuery(ResourceType.TARGET, args.target_name, match),
                  CreateSpec(ResourceType.TARGET, args.target_name, args.integration_id,
                             {"environmentType": int_type, "parameters": tgt_params}),
                  settle=args.settle)

    pol = resolve(client, ResourceQuery(ResourceType.POLICY, args.policy_name, match),
                  CreateSpec(ResourceType.POLICY, args.policy_name, args.integration_id, {
                      "environmentType": int_type,
                      "policySite": "manual",
                      "policyType": "manualUpload",
                      "targets": [{"id": tgt.id}],
                      "scenarioIds": [args.scenario_id],
                      "description": f"Policy created by {MY_NAME}",
                      "permanentRunOptions": {},
                  }),
                  settle=args.settle)
    print(pol.id)
    return 0

def cmd_app_target(client: ZnClient, settings: Settings, args) -> int:
    tgt = resolve(client, ResourceQuery(ResourceType.TARGET, args.target_name), settle=args.settle)
    app = resolve(client, ResourceQuery(ResourceType.APPLICATION, args.app_name),
                  CreateSpec(ResourceType.APPLICATION, args.app_name, None,
                             {"targetIds": [tgt.id], "description": ""}),
                  settle=args.settle)

    obj = get_by_id(client, ResourceType.APPLICATION, app.id, params={"expand": "false"})
    data = obj.get("data") or {}
    tgt_ids = [str(t) for t in (data.get("targetIds") or [])]
    if tgt.id in tgt_ids:
        log.info("Target '%s' is already a member of Application '%s'.", tgt.name, app.name)
        print(app.id)
        return 0

    # PUT replaces the Application, so carry over the risk estimate.
    body = {"name": record_name(obj) or app.name, "targetIds": tgt_ids + [tgt.id],
            "description": data.get("description") or ""}
    risk = data.get("typeOfRiskEstimate")
    if risk in RISK_IMPACT and data.get(RISK_IMPACT[risk]) is not None:
        log.info("'%s' is using '%s' risk impact assessment.", app.name, risk)
        body["typeOfRiskEstimate"] = risk
        body[RISK_IMPACT[risk]] = data[RISK_IMPACT[risk]]
    log.info("Updating Application '%s'...", app.name)
    client.put(f"/applications/{app.id}", body)
    log.info("Application '%s' updated with Target '%s'.", app.name, tgt.name)
    print(app.id)
    return 0

def cmd_policy_run(client: ZnClient, settings: Settings, args) -> int:
    run_options = {}
    if args.run_options:
        try:
            run_options = json.loads(args.run_options)
        except ValueError as e:
            raise ZnError(f"runOptions is not valid JSON: {e}") from e
        log.info("Using optional custom runOptions...")
    _policy(client, args.policy_id)
    job_id = _run_policy(client, args.policy_id, {"options": {"runOptions": run_options}})
    print(job_id)
    if not args.wait: return 0
    return _finish(_wait_job(client, settings, job_id, args.poll_retries))

def cmd_job_wait(client: ZnClient, settings: Settings, args) -> int:
    return _finish(_wait_job(client, settings, args.job_id, args.poll_retries))

def prepare_issues_file(path: str, workdir: str) -> str:
    """Fortify FPR -> its audit.fvdl; NexusIQ report -> components carrying securityData; else as is."""
    if ".fpr" in os.path.basename(path).lower():
        log.info("Looks like a Fortify FPR file. Extracting audit.fvdl...")
        out = os.path.join(workdir, "audit.fvdl")
        try:
            with zipfile.ZipFile(path) as zf, open(out, "wb") as f:
                f.write(zf.read("audit.fvdl"))
        except (zipfile.BadZipFile, KeyError) as e:
            raise ZnError(f"Error while extracting 'audit.fvdl' from '{path}': {e}") from e
        if os.path.getsize(out) == 0:
            raise ZnError(f"Extracted 'audit.fvdl' from '{path}' is empty.")
        return out
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        text = f.read()
    if '"coordinates":' in text:
        log.info("Looks like a Sonatype NexusIQ file.")
        try:
            comps = json.loads(text).get("components") or []
        except (ValueError, AttributeError) as e:
            raise ZnError(f"Can't parse NexusIQ file '{path}': {e}") from e
        out = os.path.join(workdir, "nexusiq.json")
        with open(out, "w", encoding="utf-8") as f:
            json.dump([c for c in comps if isinstance(c, dict) and c.get("securityData") is not None], f)
        log.info("Data file preprocessed into '%s'.", out)
        return out
    return path

def cmd_upload_issues(client: ZnClient, settings: Settings, args) -> int:
    if not os.path.isfile(args.issues_file):
        raise ZnError(f"Issues file '{args.issues_file}' not found.")
    pol = _policy(client, args.policy_id)
    if (pol.get("data") or {}).get("policyType") != "manualUpload":
        log.warning("WARNING: Policy is not a 'manualUpload' type. This could lead to problems.")

    with tempfile.TemporaryDirectory(prefix="zn_") as workdir:
        data_file = prepare_issues_file(args.issues_file, workdir)
        job_id = _run_policy(client, args.policy_id)
        log.info("Uploading the file...")
        with open(data_file, "rb") as fh:
            client.post(f"/onprem/issues/{job_id}", files={"file": (os.path.basename(data_file), fh)})

    log.info("Hang on..."); time.sleep(RESUME_DELAY)
    log.info("Resuming Job to finish the process...")
    client.post(f"/jobs/{job_id}/resume")
    print(job_id)
    if args.no_wait: return 0
    return _finish(_wait_job(client, settings, job_id, args.poll_retries))

def cmd_jobs(client: ZnClient, settings: Settings, args) -> int:
    status = args.status.upper() if args.status else None
    resume = args.resume and status in ("RUNNING", "PENDING")
    if args.resume and not resume:
        log.warning("--resume only applies with a RUNNING or PENDING status filter; ignoring it.")
    cust_name = client.me()["customer"]["data"]["name"]
    log.info("Customer = '%s'", cust_name)

    params = {"limit": args.limit, "since": args.since}
    if args.until.upper() != "NOW": params["until"] = args.until
    log.info("Retrieving Jobs list...")
    jobs, count = parse_list(client.get("/jobs", params=params))
    if not jobs:
        log.info("No jobs found."); return 0
    log.info("Read %d job%s.", count, "" if count == 1 else "s")

    rows = job_rows(cust_name, jobs, status)
    write_table(rows, JOB_COLUMNS, out=args.out, sheet="Jobs")
    if status: log.info("%d jobs listed.", len(rows))

    if resume and rows:
        log.info("Resuming above %s jobs...", status)
        progress = _start_progress(args.pretty)
        task = progress.add_task("🌀 Resuming jobs", total=len(rows)) if progress else None
        try:
            for r in rows:
                log.info("Resuming Job ID %s...", r["jobId"])
                client.post(f"/jobs/{r['jobId']}/resume")
                if progress: progress.advance(task)
                time.sleep(1)
        except Exception:
            if progress: progress.stop()
            raise
        _stop_progress(progress, f"Resumed {len(rows)} jobs")
    return 0

def cmd_policies(client: ZnClient, settings: Settings, args) -> int:
    log.info("Retrieving Policies list...")
    pols, count = parse_list(client.get("/policies", params={"limit": args.limit}))
    if not pols:
        log.info("No policies found."); return 0
    log.info("Found %d Policies.", count)
    rows = []
    for p in pols:
        scheds = None
        if args.schedules:
            scheds, _ = parse_list(client.get(f"/policies/{p.get('id')}/schedules"))
        rows.append(policy_row(p, scheds, with_schedules=args.schedules))
    cols = POLICY_COLUMNS + (SCHEDULE_COLUMNS if args.schedules else [])
    write_table(rows, cols, out=args.out, sep="|", header=not args.no_headers, sheet="Policies")
    return 0

def cmd_targets(client: ZnClient, settings: Settings, args) -> int:
    if args.jobs and not args.policies:
        raise ZnError("--jobs only applies together with --policies.")
    cust_name = client.me()["customer"]["data"]["name"]
    log.info("Tenant = '%s'", cust_name)
    log.info("Retrieving Targets list...")
    tgts, count = parse_list(client.get("/targets", params={"limit": args.limit}))
    if not tgts:
        log.info("No Targets found."); return 0
    log.info("Found %d Targets.", count)

    rows = []
    for t in tgts:
        base = target_row(cust_name, t)
        if not args.policies:
            rows.append(base); continue
        pols, _ = parse_list(client.get("/policies", params={"targetId": t.get("id")}))
        jobs = {}
        for p in pols:
            recs, _ = parse_list(client.get("/jobs", params={"policyId": p.get("id"), "limit": 1000}))
            jobs[p.get("id")] = recs
        rows.extend(target_policy_rows(base, pols, jobs, with_jobs=args.jobs))
    cols = TARGET_COLUMNS + (TARGET_POLICY_COLUMNS if args.policies else []) + (TARGET_JOB_COLUMNS if args.jobs else [])
    write_table(rows, cols, out=args.out, sep="|", header=not args.no_headers, sheet="Targets")
    return 0

def cmd_rename(client: ZnClient, settings: Settings, args) -> int:
    rtype = TYPE_CHOICES[args.type]
    if args.by_id:
        obj = get_by_id(client, rtype, args.name_or_id)
    else:
        found = resolve(client, ResourceQuery(rtype, args.name_or_id))
        obj = get_by_id(client, rtype, found.id)
    body = dict(obj.get("data") or {})
    if not body:
        raise ProtocolError(f"{rtype.label} '{args.name_or_id}' has no data to update.")
    body["name"] = args.new_name
    if rtype is ResourceType.TARGET:
        for k in ("includeRegex", "excludeRegex"):
            if body.get(k) is None: body[k] = []
        if not body.get("notifications"): body["notifications"] = []
    log.info("Updating '%s'...", args.name_or_id)
    client.put(f"/{rtype.value}/{obj['id']}", body)
    log.info("Updated the %s '%s' with the new name '%s'.", rtype.label, args.name_or_id, args.new_name)
    print(obj["id"])
    return 0

def cmd_webhook_create(client: ZnClient, settings: Settings, args) -> int:
    _policy(client, args.policy_id)
    obj = client.post("/webhooks", body={"isEnabled": True, "jobType": "policyRun",
                                         "jobData": {"policyId": args.policy_id}})
    url = obj.get("url") if isinstance(obj, dict) else None
    if not url:
        raise ProtocolError(f"Webhook response carried no url: {str(obj)[:400]}")
    print(url)
    return 0


# ===== Account iteration
class AssumeMismatch(ZnError):
    """The assumed token answers for a different customer; stop the whole run."""

def assume(client: ZnClient, customer_id: str) -> str:
    obj = client.post("/accounts/assume", body={"customerId": customer_id})
    if not isinstance(obj, dict) or obj.get("token_type") != "Bearer" or not obj.get("id_token"):
        raise CredentialError(f"Failed to obtain a key for customer '{customer_id}'.")
    return obj["id_token"]

def cmd_each_account(client: ZnClient, settings: Settings, args, parser: argparse.ArgumentParser,
                     make_client: Callable[[str], ZnClient]) -> int:
    inner_argv = list(args.command)
    if inner_argv and inner_argv[0] == "--": inner_argv = inner_argv[1:]
    if not inner_argv:
        raise ZnError("each-account needs a command to run.")
    inner = parser.parse_args(inner_argv)
    if inner.cmd == "each-account":
        raise ZnError("each-account can't be nested.")
    log.info("Command to run per account: '%s'", " ".join(inner_argv))

    me = client.me(); cust = me["customer"]
    log.info("You are '%s' at '%s' (%s).", me.get("email"), cust["data"]["name"], cust.get("id"))
    accounts = sorted(cust["data"].get("assumableCustomers") or [], key=lambda c: c.get("name") or "")
    if not accounts and not args.include_root:
        log.info("No assumable customers."); return 0
    if args.include_root:
        accounts = [{"id": cust.get("id"), "name": cust["data"]["name"], "_root": True}] + accounts
        log.info("Root account plus %d assumable accounts.", len(accounts) - 1)
    else:
        log.info("%d assumable accounts.", len(accounts))

    failures = 0
    progress = _start_progress(args.pretty)
    task = progress.add_task("🌀 Accounts", total=len(accounts)) if progress else None
    try:
        for i, acct in enumerate(accounts, start=1):
            log.info(SEPARATOR)
            log.info("Customer %d of %d: %s '%s'...", i, len(accounts), acct.get("id"), acct.get("name"))
            try:
                if acct.get("_root"):
                    sub = client
                else:
                    token = assume(client, acct["id"])
                    if len(token) < settings.min_token_len:
                        raise CredentialError(f"The API token seems too short at {len(token)} bytes. Skipping this customer.")
                    sub = make_client(token)
                    new_me = sub.me()["customer"]["data"]["name"]
                    if new_me != acct.get("name"):
                        raise AssumeMismatch(f"Critical error, assume failed: now '{new_me}', expected '{acct.get('name')}'.")
                    log.info("Confirming that I am now '%s' and therefore proceeding...", new_me)
                rc = inner.func(sub, settings, inner)
                log.info("Back from '%s' with exit status of '%s'.", inner.cmd, rc)
                if rc: failures += 1
            except AssumeMismatch:
                raise
            except ZnError as e:
                failures += 1
                log.error("ERROR: %s", e)
            if progress: progress.advance(task)
    except BaseException:
        if progress: progress.stop()
        raise
    log.info(SEPARATOR)
    _stop_progress(progress, f"{len(accounts)} accounts, {failures} failed")
    return 1 if failures else 0



# ===== Main
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog=MY_NAME, description="ZeroNorth operations runner")
    p.add_argument("--key-file", default=None, help="File holding only the API key (default: API_KEY env var)")
    p.add_argument("--api-root", default=None)
    p.add_argument("--poll-interval", type=float, default=None)
    p.add_argument("--poll-timeout", type=float, default=None)
    p.add_argument("--quiet", action="store_true")
    p.add_argument("--debug", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("whoami", help="Customer name, id and your email")
    s.set_defaults(func=cmd_whoami)

    s = sub.add_parser("resolve", help="Look up (or create) one object by name")
    s.add_argument("type", choices=sorted(TYPE_CHOICES))
    s.add_argument("name")
    s.add_argument("--substring", action="store_true", help="Match names containing NAME (risky)")
    s.add_argument("--create", action="store_true")
    s.add_argument("--parent", default=None, help="Integration/environment id for --create")
    s.add_argument("--attr", action="append", metavar="KEY=VALUE")
    s.add_argument("--settle", type=float, default=0.0)
    s.set_defaults(func=cmd_resolve)

    s = sub.add_parser("target-n-policy", help="Look up or create a Target and a manual upload Policy")
    s.add_argument("policy_name")
    s.add_argument("scenario_id")
    s.add_argument("integration_id")
    s.add_argument("target_name")
    s.add_argument("--substring", action="store_true")
    s.add_argument("--settle", type=float, default=0.0, help="Look up twice, this many seconds apart")
    s.set_defaults(func=cmd_target_n_policy)

    s = sub.add_parser("app-target", help="Look up or create an Application and add a Target to it")
    s.add_argument("app_name")
    s.add_argument("target_name")
    s.add_argument("--settle", type=float, default=0.0, help="Look up twice, this many seconds apart")
    s.set_defaults(func=cmd_app_target)

    s = sub.add_parser("policy-run",help="Run a Policy, optionally waiting for the Job")
    s.add_argument("policy_id")
    s.add_argument("run_options", nargs="?", default=None, help='JSON runOptions, e.g. {"appId":"123"}')
    s.add_argument("--wait", action="store_true")
    s.add_argument("--poll-retries", type=int, default=0)
    s.set_defaults(func=cmd_policy_run)

    s = sub.add_parser("job-wait", help="Wait for an existing Job")
    s.add_argument("job_id")
    s.add_argument("--poll-retries", type=int, default=0)
    s.set_defaults(func=cmd_job_wait)

    s = sub.add_parser("upload-issues", help="Run a manual upload Policy with an issues file")
    s.add_argument("policy_id")
    s.add_argument("issues_file")
    s.add_argument("--no-wait", action="store_true")
    s.add_argument("--poll-retries", type=int, default=0)
    s.set_defaults(func=cmd_upload_issues)

    s = sub.add_parser("jobs", help="List Jobs as CSV, optionally resuming them")
    s.add_argument("since", help="YYYY-MM-DD[Thh:mi:ss] UTC")
    s.add_argument("until", help="Same format, or NOW")
    s.add_argument("--limit", type=int, default=100)
    s.add_argument("--status", choices=["RUNNING","PENDING","FAILED","FINISHED"], type=str.upper, default=None)
    s.add_argument("--resume", action="store_true")
    s.add_argument("--out", default=None)
    s.add_argument("--pretty", action="store_true")
    s.set_defaults(func=cmd_jobs)

    s = sub.add_parser("policies", help="List Policies (pipe-delimited)")
    s.add_argument("--limit", type=int, default=3000)
    s.add_argument("--schedules", action="store_true")
    s.add_argument("--no-headers", action="store_true")
    s.add_argument("--out", default=None)
    s.set_defaults(func=cmd_policies)

    s = sub.add_parser("targets", help="List Targets (pipe-delimited), optionally with Policies and Jobs")
    s.add_argument("--limit", type=int, default=2000)
    s.add_argument("--policies", action="store_true", help="One row per Target-Policy pair")
    s.add_argument("--jobs", action="store_true", help="With --policies, one row per FINISHED job")
    s.add_argument("--no-headers", action="store_true")
    s.add_argument("--out", default=None)
    s.set_defaults(func=cmd_targets)

    s = sub.add_parser("rename", help="Rename a Target, Policy or Application")
    s.add_argument("type", choices=["target","policy","application"])
    s.add_argument("name_or_id")
    s.add_argument("new_name")
    s.add_argument("--by-id", action="store_true")
    s.set_defaults(func=cmd_rename)

    s = sub.add_parser("webhook-create", help="Register a policyRun webhook")
    s.add_argument("policy_id")
    s.set_defaults(func=cmd_webhook_create)

    s = sub.add_parser("each-account", help="Run a command once per assumable customer account")
    s.add_argument("--include-root", action="store_true")
    s.add_argument("--pretty", action="store_true")
    s.add_argument("command", nargs=argparse.REMAINDER)
    s.set_defaults(func=None)
    return p

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.quiet, args.debug)
    try:
        settings = load_settings().override(api_root=args.api_root, poll_interval=args.poll_interval,
                                            poll_timeout=args.poll_timeout)
        if settings.debug and not args.debug: _setup_logging(args.quiet, True)
        client = _client(settings, args)
        if args.cmd == "each-account":
            return cmd_each_account(client, settings, args, parser, lambda tok: ZnClient(settings, tok))
        rc = args.func(client, settings, args)
    except ZnError as e:
        log.error("ERROR: %s", e)
        log.error("Exiting due to an error.")
        return 1
    log.info("Done.")
    return rc

if __name__ == "__main__":
    sys.exit(main())
