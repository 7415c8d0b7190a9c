# zn_reports.py
#
# Row builders + writer for the listing commands (jobs, policies, targets).
# Writer: stdout/CSV by default, Excel when --out ends in .xlsx (pandas + openpyxl).

import sys
from typing import Dict, Any, Optional, List, IO
from zn_api import record_name

JOB_COLUMNS = ["custName","startDateTime(UTC)","endDateTime(UTC)","jobId","jobStatus","polId","polName"]
POLICY_COLUMNS = ["polId","polName","tgtId","tgtName","tgtType","scenarioId","scenarioName"]
SCHEDULE_COLUMNS = ["schedCount","schedCode"]
TARGET_COLUMNS = ["Tenant","TargetID","TargetName","TargetCreated","TargetType","TargetTags"]
TARGET_POLICY_COLUMNS = ["Status","PolicyId","PolicyName","Scanner"]
TARGET_JOB_COLUMNS = ["job_date"]


# ===== Time helpers
def _api_ts(ts: Optional[str]) -> str:
    """2021-03-04T05:06:07.123Z -> 2021-03-04 05:06:07"""
    if not ts or not isinstance(ts, str): return ""
    return ts.split(".")[0].replace("T", " ").replace("Z", "")


# ===== Jobs
def job_rows(cust_name: str, jobs: List[Dict[str,Any]], status: Optional[str] = None) -> List[Dict[str,Any]]:
    ordered = sorted(jobs, key=lambda j: ((j.get("meta") or {}).get("created") or ""))
    out = []
    for j in ordered:
        meta = j.get("meta") or {}; data = j.get("data") or {}
        if status and (data.get("status") or "").upper() != status.upper(): continue
        out.append({
            "custName": cust_name,
            "startDateTime(UTC)": _api_ts(meta.get("created")),
            "endDateTime(UTC)": _api_ts(meta.get("lastModified")),
            "jobId": j.get("id"), "jobStatus": data.get("status"),
            "polId": data.get("policyId"), "polName": data.get("policyName"),
        })
    return out


# ===== Policies
def policy_row(pol: Dict[str,Any], schedules: Optional[List[Dict[str,Any]]] = None,
               with_schedules: bool = False) -> Dict[str,Any]:
    data = pol.get("data") or {}
    tgts = data.get("targets") if isinstance(data.get("targets"), list) else []; tgt = tgts[0] if tgts else {}
    scns = data.get("scenarios") if isinstance(data.get("scenarios"), list) else []; scn = scns[0] if scns else {}
    row = {
        "polId": pol.get("id"), "polName": record_name(pol),
        "tgtId": tgt.get("id"), "tgtName": tgt.get("targetName") or tgt.get("name"),
        "tgtType": data.get("environmentType"),
        "scenarioId": scn.get("id"), "scenarioName": scn.get("name"),
    }
    if with_schedules:
        scheds = schedules or []
        first = (scheds[0].get("data") or {}) if scheds else {}
        row.update({"schedCount": len(scheds), "schedCode": first.get("pattern")})
    return row


# ===== Targets
def target_row(cust_name: str, tgt: Dict[str,Any]) -> Dict[str,Any]:
    data = tgt.get("data") or {}
    tags = data.get("tags") if isinstance(data.get("tags"), list) else []
    return {
        "Tenant": cust_name, "TargetID": tgt.get("id"), "TargetName": record_name(tgt),
        "TargetCreated": _api_ts((tgt.get("meta") or {}).get("created")),
        "TargetType": data.get("environmentType"), "TargetTags": ",".join(str(t) for t in tags),
    }

def target_policy_rows(base: Dict[str,Any], policies: List[Dict[str,Any]],
                       jobs_by_policy: Dict[str,List[Dict[str,Any]]], with_jobs: bool = False) -> List[Dict[str,Any]]:
    """One row per Target-Policy pair, or per FINISHED job of each pair when with_jobs."""
    if not policies:
        return [dict(base, Status="No Policies")]
    out = []
    for pol in policies:
        data = pol.get("data") or {}
        scns = data.get("scenarios") if isinstance(data.get("scenarios"), list) else []
        done = [_api_ts((j.get("meta") or {}).get("lastModified")) for j in jobs_by_policy.get(pol.get("id"), [])
                if (j.get("data") or {}).get("status") == "FINISHED"]
        row = dict(base, Status="Scanned" if done else "Not scanned", PolicyId=pol.get("id"),
                   PolicyName=record_name(pol), Scanner=(scns[0].get("name") if scns else None))
        if not with_jobs:
            out.append(row); continue
        out.extend(dict(row, job_date=d) for d in (done or [""]))
    return out


# ===== Writer
def write_table(rows: List[Dict[str,Any]], columns: List[str], out: Optional[str] = None,
                sep: str = ",", header: bool = True, sheet: str = "Sheet1",
                stream: Optional[IO[str]] = None) -> Optional[str]:
    import pandas as pd
    df = pd.DataFrame(rows or [], columns=columns)
    if out and out.lower().endswith((".xlsx",".xls")):
        if out.lower().endswith(".xls"): out = out + "x"
        with pd.ExcelWriter(out, engine="openpyxl") as xw:
            df.to_excel(xw, sheet_name=sheet, index=False, header=header)
        return out
    if out:
        df.to_csv(out, sep=sep, index=False, header=header)
        return out
    df.to_csv(stream or sys.stdout, sep=sep, index=False, header=header)
    return None
