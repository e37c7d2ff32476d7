"""
Job-assigned confirmation email parser.

The confirmation email lists the job as <li><b>Label:</b> value</li> items
and names the assignee in the first <h2>:

    "We would like to inform you that a job has been assigned to Jane Doe:"

Labels are looked up in LABEL_TO_FIELD. New labels are added there; the
parsing loop never changes.
"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup

from jobhook.models.job_offer import AssignmentDetails

logger = logging.getLogger(__name__)

# Exact, case-sensitive label text (without trailing colon) -> model field
LABEL_TO_FIELD: dict[str, str] = {
    "Address": "address",
    "Road Distance": "road_distance",
    "Reference No": "reference_no",
    "Reference No.": "reference_no",
    "Appointment Date": "appointment_date",
    "Mode of Payment": "mode_of_payment",
    "Service": "service",
    "Appliance": "appliance",
    "Brand": "brand",
    "Model": "model",
    "Symptom": "symptom",
    "Problem Detail": "problem_detail",
    "Problem Details": "problem_detail",
    "Service Fee": "service_fee",
    "Job Type": "job_type",
    "Dispatch Team": "dispatch_team",
}

_ASSIGNED_TO = re.compile(r"assigned to ([^:]+):?$", re.IGNORECASE)


def _field_for_label(bold_text: str) -> Optional[str]:
    label = re.sub(r":$", "", bold_text).strip()
    return LABEL_TO_FIELD.get(label) or LABEL_TO_FIELD.get(label + ".")


def parse_assignment_email(html: str) -> AssignmentDetails:
    """
    Extract every known label/value pair from a job-assigned email.

    Unknown labels are ignored; when a label repeats, the last one wins.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    values: dict[str, Optional[str]] = {}

    heading = soup.find("h2")
    if heading is not None:
        match = _ASSIGNED_TO.search(heading.get_text().strip())
        if match:
            values["assigned_to"] = match.group(1).strip()

    for item in soup.find_all("li"):
        bold = item.find("b")
        if bold is None:
            continue
        bold_text = bold.get_text().strip()
        if not bold_text:
            continue

        field = _field_for_label(bold_text)
        if field is None:
            continue

        text = item.get_text().strip()
        value = re.sub("^" + re.escape(bold_text) + r"\s*", "", text).strip()
        values[field] = value or None

    logger.info(f"Assignment email parsed: {len(values)} field(s) found")
    return AssignmentDetails(**values)
