"""HTML rendering for the intake form page.

Produces one self-contained HTML document (embedded CSS and script) with
the nine application sections, a section navigation bar, carrier dropdowns
fed from the carriers table and a live quote panel.  The page talks to the
JSON endpoints: ``/v1/quote`` for totals, ``/v1/applications`` to submit and
``/v1/applications/sample`` for demo data.

Control names use dotted paths into :class:`~iris.intake.schemas.ApplicationForm`
(``basic_information.first_name``, ``dependents.0.name`` ...) so the script
can rebuild the nested JSON body without a per-field table.
"""

from __future__ import annotations

import json
from html import escape
from typing import Any

from iris import __version__
from iris.intake.schemas import MAX_DEPENDENTS

# ---------------------------------------------------------------------------
# Form layout
# ---------------------------------------------------------------------------

# (name, label, kind, options); kind is text | date | email | number | select |
# checkbox | textarea | type-select | carrier-select
Field = tuple[str, str, str, tuple[str, ...]]

US_STATES = (
    "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "DC", "FL", "GA", "HI", "ID",
    "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD", "MA", "MI", "MN", "MS", "MO",
    "MT", "NE", "NV", "NH", "NJ", "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA",
    "RI", "SC", "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
)
LEAD_SOURCES = ("website", "referral", "advertisement")
GENDERS = ("male", "female", "other")
RELATIONSHIPS = ("Spouse", "Child", "Parent", "Other")
CARD_TYPES = ("Visa", "Mastercard", "American Express", "Discover")

SECTIONS: tuple[tuple[str, str, tuple[Field, ...]], ...] = (
    (
        "basic_information",
        "Basic Information",
        (
            ("lead_id", "Lead ID *", "text", ()),
            ("first_name", "First Name *", "text", ()),
            ("last_name", "Last Name *", "text", ()),
            ("email", "Email", "email", ()),
            ("date_of_birth", "Date of Birth", "date", ()),
            ("lead_source", "Lead Source", "select", LEAD_SOURCES),
            ("insurance_state", "Insurance State", "select", US_STATES),
            ("type_of_insurance", "Type of Insurance", "type-select", ()),
        ),
    ),
    (
        "health_information",
        "Health Information",
        (
            ("currently_insured", "Currently Insured", "checkbox", ()),
            ("last_time_insured", "Last Time Insured", "text", ()),
            ("current_medications", "Current Medications", "textarea", ()),
            ("pre_existing_conditions", "Pre-existing Conditions", "textarea", ()),
            ("major_hospitalizations", "Major Hospitalizations / Surgeries", "textarea", ()),
            ("projected_annual_income", "Projected Annual Income", "text", ()),
        ),
    ),
    (
        "insurance_details",
        "Insurance Details",
        (
            ("insurance_state", "Insurance State", "select", US_STATES),
            ("type_of_insurance", "Type", "type-select", ()),
            ("carrier_u65", "Carrier U65", "carrier-select", ()),
            ("plan", "Plan", "text", ()),
            ("plan_cost", "Carrier U65 Premium", "text", ()),
            ("plan_commission", "Carrier U65 Commission", "text", ()),
            ("carrier_aca", "Carrier ACA", "text", ()),
            ("aca_plan_premium", "ACA Plan Premium", "text", ()),
            ("aca_plan_deductible", "ACA Plan Deductible", "text", ()),
            ("american_financial_1_plan", "American Financial Plan 1", "text", ()),
            ("american_financial_1_premium", "American Financial 1 Premium", "text", ()),
            ("american_financial_1_commission", "American Financial 1 Commission", "text", ()),
            ("american_financial_2_plan", "American Financial Plan 2", "text", ()),
            ("american_financial_2_premium", "American Financial 2 Premium", "text", ()),
            ("american_financial_2_commission", "American Financial 2 Commission", "text", ()),
            ("american_financial_3_plan", "American Financial Plan 3", "text", ()),
            ("american_financial_3_premium", "American Financial 3 Premium", "text", ()),
            ("american_financial_3_commission", "American Financial 3 Commission", "text", ()),
            ("amt_1_plan", "AMT 1 Plan", "text", ()),
            ("amt_1_premium", "AMT 1 Premium", "text", ()),
            ("amt_1_commission", "AMT 1 Commission", "text", ()),
            ("amt_2_plan", "AMT 2 Plan", "text", ()),
            ("amt_2_premium", "AMT 2 Premium", "text", ()),
            ("amt_2_commission", "AMT 2 Commission", "text", ()),
            ("leo_addons_plans", "Leo Add-on Plans", "textarea", ()),
            ("leo_addons_premium", "Leo Add-ons Premium", "text", ()),
            ("leo_addons_commission", "Leo Add-ons Commission", "text", ()),
            ("essential_care_premium", "Essential Care Premium", "text", ()),
            ("essential_care_commission", "Essential Care Commission", "text", ()),
            ("enrollment_fee", "Enrollment Fee", "text", ()),
            ("enrollment_fee_commission", "Enrollment Fee Commission", "text", ()),
            ("total_premium", "Total Premium (blank = calculated)", "text", ()),
            ("total_commission", "Total Commission (blank = calculated)", "text", ()),
        ),
    ),
    (
        "personal_details",
        "Personal Details",
        (
            ("ssn", "SSN", "text", ()),
            ("gender", "Gender", "select", GENDERS),
            ("height", "Height", "text", ()),
            ("weight", "Weight", "text", ()),
            ("smoker_status", "Smoker", "checkbox", ()),
        ),
    ),
    (
        "contact_numbers",
        "Contact Numbers",
        (
            ("cell_phone", "Cell Phone", "text", ()),
            ("work_phone", "Work Phone", "text", ()),
        ),
    ),
    (
        "address_information",
        "Address Information",
        (
            ("address_line1", "Address Line 1", "text", ()),
            ("address_line2", "Address Line 2", "text", ()),
            ("city", "City", "text", ()),
            ("state", "State", "select", US_STATES),
            ("zip_code", "Zip", "text", ()),
        ),
    ),
    ("dependents", "Dependents", ()),
    (
        "billing_information",
        "Billing Information",
        (
            ("same_as_applicant", "Billing info same as applicant", "checkbox", ()),
            ("billing_address_line1", "Billing Address Line 1", "text", ()),
            ("billing_address_line2", "Billing Address Line 2", "text", ()),
            ("billing_city", "Billing City", "text", ()),
            ("billing_state", "Billing State", "select", US_STATES),
            ("billing_zip_code", "Billing Zip", "text", ()),
            ("card_type", "Card Type", "select", CARD_TYPES),
            ("card_number", "Card Number", "text", ()),
            ("exp_month", "Exp. Month", "text", ()),
            ("exp_year", "Exp. Year", "text", ()),
            ("cvv", "CVV", "text", ()),
        ),
    ),
    (
        "agent_information",
        "Agent Information",
        (
            ("agent_name", "Agent", "text", ()),
            ("fronter_name", "Fronter Name", "text", ()),
            ("notes", "Notes", "textarea", ()),
        ),
    ),
)

DEPENDENT_FIELDS: tuple[Field, ...] = (
    ("name", "Name", "text", ()),
    ("dob", "DOB", "date", ()),
    ("ssn", "SSN", "text", ()),
    ("gender", "Gender", "select", GENDERS),
    ("relationship", "Relationship", "select", RELATIONSHIPS),
)

# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------

_CSS = """\
:root {
  --primary: #1a365d;
  --accent: #2b6cb0;
  --bg: #ffffff;
  --bg-alt: #f7fafc;
  --text: #1a202c;
  --text-muted: #718096;
  --border: #e2e8f0;
  --success: #276749;
  --error: #c53030;
}

* { box-sizing: border-box; }

body {
  font-family: "Segoe UI", system-ui, -apple-system, sans-serif;
  color: var(--text);
  background: var(--bg-alt);
  margin: 0;
  font-size: 14px;
}

header {
  background: var(--primary);
  color: #fff;
  padding: 16px 32px;
}
header h1 { margin: 0; font-size: 20px; }
header .version { color: #cbd5e0; font-size: 12px; }

nav.sections {
  position: sticky;
  top: 0;
  background: var(--bg);
  border-bottom: 1px solid var(--border);
  padding: 8px 32px;
  z-index: 10;
}
nav.sections a {
  color: var(--accent);
  margin-right: 14px;
  text-decoration: none;
  font-weight: 600;
}

.layout { display: flex; gap: 24px; padding: 24px 32px; }
form { flex: 1; }

fieldset {
  background: var(--bg);
  border: 1px solid var(--border);
  border-radius: 6px;
  margin: 0 0 20px;
  padding: 16px 20px;
}
legend { font-weight: 700; color: var(--primary); padding: 0 6px; }

.grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(220px, 1fr)); gap: 12px; }
.field label { display: block; font-size: 12px; color: var(--text-muted); margin-bottom: 3px; }
.field input, .field select, .field textarea {
  width: 100%;
  padding: 6px 8px;
  border: 1px solid var(--border);
  border-radius: 4px;
  font: inherit;
}
.field.checkbox label { display: inline; color: var(--text); }
.field.checkbox input { width: auto; }
.dependent { border-top: 1px dashed var(--border); padding-top: 10px; margin-top: 10px; }
.dependent h4 { margin: 0 0 8px; font-size: 13px; }

aside.totals {
  width: 300px;
  position: sticky;
  top: 56px;
  align-self: flex-start;
  background: var(--bg);
  border: 1px solid var(--border);
  border-radius: 6px;
  padding: 16px;
}
aside.totals h3 { margin-top: 0; color: var(--primary); }
aside.totals table { width: 100%; border-collapse: collapse; font-size: 13px; }
aside.totals td { padding: 3px 0; }
aside.totals td.num { text-align: right; font-variant-numeric: tabular-nums; }
aside.totals tr.total td { border-top: 2px solid var(--primary); font-weight: 700; }

.actions { display: flex; gap: 10px; margin-bottom: 40px; }
button {
  background: var(--accent);
  color: #fff;
  border: none;
  border-radius: 4px;
  padding: 9px 18px;
  font-weight: 600;
  cursor: pointer;
}
button.secondary { background: #a0aec0; }
#status { margin: 12px 0; font-weight: 600; }
#status.ok { color: var(--success); }
#status.error { color: var(--error); }
#status ul { font-weight: 400; }
"""

# ---------------------------------------------------------------------------
# Script
# ---------------------------------------------------------------------------

_JS = """\
const DATA = JSON.parse(document.getElementById("iris-data").textContent);
const form = document.getElementById("application");
const statusBox = document.getElementById("status");

function headers() {
  const h = { "Content-Type": "application/json" };
  const key = document.getElementById("api-key");
  if (key && key.value) h["X-API-Key"] = key.value;
  return h;
}

function collect() {
  const body = { dependents: [] };
  for (const el of form.elements) {
    if (!el.name) continue;
    const path = el.name.split(".");
    const value = el.type === "checkbox" ? el.checked : el.value;
    if (path[0] === "dependents") {
      const i = Number(path[1]);
      body.dependents[i] = body.dependents[i] || {};
      body.dependents[i][path[2]] = value;
    } else {
      body[path[0]] = body[path[0]] || {};
      body[path[0]][path[1]] = value;
    }
  }
  body.dependents = body.dependents.filter(Boolean);
  return body;
}

function populate(data) {
  for (const el of form.elements) {
    if (!el.name) continue;
    const path = el.name.split(".");
    let value = data;
    for (const part of path) value = value == null ? undefined : value[part];
    if (el.type === "checkbox") {
      el.checked = Boolean(value);
    } else {
      if (el.dataset.kind === "type-select") el.dispatchEvent(new Event("change"));
      el.value = value == null ? "" : value;
      if (el.dataset.kind === "type-select") el.dispatchEvent(new Event("change"));
    }
  }
  refreshQuote();
}

function fillCarriers(planType) {
  const select = form.querySelector('[data-kind="carrier-select"]');
  const current = select.value;
  select.innerHTML = '<option value="">Select carrier</option>';
  for (const name of DATA.carriers_by_type[planType] || []) {
    const opt = document.createElement("option");
    opt.value = name;
    opt.textContent = name;
    select.appendChild(opt);
  }
  select.value = current;
}

function money(v) {
  return "$" + Number(v || 0).toLocaleString("en-US", { minimumFractionDigits: 2, maximumFractionDigits: 2 });
}

let quoteTimer = null;
function refreshQuote() {
  clearTimeout(quoteTimer);
  quoteTimer = setTimeout(async () => {
    const resp = await fetch("/v1/quote", {
      method: "POST",
      headers: headers(),
      body: JSON.stringify(collect().insurance_details),
    });
    if (!resp.ok) return;
    const q = await resp.json();
    const rows = [
      ["Base plan", q.base_plan], ["Add-ons", q.addons],
      ["Leo add-ons", q.leo_addons], ["Enrollment", q.enrollment],
    ].map(([label, s]) =>
      `<tr><td>${label}</td><td class="num">${money(s.premium)}</td><td class="num">${money(s.commission)}</td></tr>`
    ).join("");
    document.getElementById("totals-body").innerHTML = rows +
      `<tr class="total"><td>Total</td><td class="num">${money(q.total_premium)}</td><td class="num">${money(q.total_commission)}</td></tr>`;
  }, 250);
}

function showStatus(kind, message, items = []) {
  statusBox.className = kind;
  statusBox.textContent = message;
  if (items.length) {
    const list = document.createElement("ul");
    for (const item of items) {
      const li = document.createElement("li");
      li.textContent = item;
      list.appendChild(li);
    }
    statusBox.appendChild(list);
  }
}

for (const el of form.querySelectorAll('[data-kind="type-select"]')) {
  el.addEventListener("change", () => fillCarriers(el.value));
}
form.addEventListener("input", (e) => {
  if (e.target.name && e.target.name.startsWith("insurance_details.")) refreshQuote();
});

document.getElementById("load-sample").addEventListener("click", async () => {
  const resp = await fetch("/v1/applications/sample", { headers: headers() });
  if (resp.ok) populate(await resp.json());
});

form.addEventListener("submit", async (e) => {
  e.preventDefault();
  showStatus("", "Submitting...");
  const resp = await fetch("/v1/applications", {
    method: "POST",
    headers: headers(),
    body: JSON.stringify(collect()),
  });
  const payload = await resp.json();
  if (resp.ok) {
    showStatus("ok", `Submitted record ${payload.record_id}`, payload.issues);
  } else {
    const detail = typeof payload.detail === "string" ? payload.detail : JSON.stringify(payload.detail);
    showStatus("error", `Submission failed: ${detail}`);
  }
});

refreshQuote();
"""


# ---------------------------------------------------------------------------
# Field rendering
# ---------------------------------------------------------------------------


def _options(values: tuple[str, ...] | list[str], placeholder: str = "Select") -> str:
    items = [f'<option value="">{placeholder}</option>']
    items += [f'<option value="{escape(v)}">{escape(v)}</option>' for v in values]
    return "".join(items)


def _render_field(name: str, label: str, kind: str, options: tuple[str, ...], plan_types: list[str]) -> str:
    field_id = name.replace(".", "-")
    if kind == "checkbox":
        return (
            f'<div class="field checkbox"><input type="checkbox" id="{field_id}" name="{name}">'
            f' <label for="{field_id}">{escape(label)}</label></div>'
        )
    if kind == "textarea":
        control = f'<textarea id="{field_id}" name="{name}" rows="2"></textarea>'
    elif kind == "select":
        control = f'<select id="{field_id}" name="{name}">{_options(options)}</select>'
    elif kind == "type-select":
        control = (
            f'<select id="{field_id}" name="{name}" data-kind="type-select">'
            f"{_options(plan_types, 'Select type')}</select>"
        )
    elif kind == "carrier-select":
        control = (
            f'<select id="{field_id}" name="{name}" data-kind="carrier-select">'
            f"{_options([], 'Select carrier')}</select>"
        )
    else:
        required = " required" if label.endswith("*") else ""
        control = f'<input type="{kind}" id="{field_id}" name="{name}"{required}>'
    return f'<div class="field"><label for="{field_id}">{escape(label)}</label>{control}</div>'


def _render_dependents(plan_types: list[str]) -> str:
    blocks = []
    for i in range(MAX_DEPENDENTS):
        fields = "".join(
            _render_field(f"dependents.{i}.{name}", label, kind, options, plan_types)
            for name, label, kind, options in DEPENDENT_FIELDS
        )
        blocks.append(
            f'<div class="dependent"><h4>Dependent {i + 1}</h4><div class="grid">{fields}</div></div>'
        )
    return "".join(blocks)


def render_form_html(
    carriers_by_type: dict[str, list[str]],
    *,
    api_key_required: bool = False,
) -> str:
    """Render the intake form page.

    Parameters
    ----------
    carriers_by_type:
        Insurance type → carrier names, from
        :meth:`~iris.catalog.carriers.CarrierCatalog.carriers_by_type`.  An
        empty mapping renders empty type and carrier dropdowns.
    api_key_required:
        Adds an API-key input whose value is sent as ``X-API-Key``.

    Returns
    -------
    str
        Complete HTML document (utf-8, self-contained).
    """
    plan_types = sorted(carriers_by_type)

    nav = "".join(f'<a href="#{key}">{escape(title)}</a>' for key, title, _ in SECTIONS)

    sections_html = ""
    for key, title, fields in SECTIONS:
        if key == "dependents":
            body = _render_dependents(plan_types)
        else:
            body = '<div class="grid">' + "".join(
                _render_field(f"{key}.{name}", label, kind, options, plan_types)
                for name, label, kind, options in fields
            ) + "</div>"
        sections_html += f'<fieldset id="{key}"><legend>{escape(title)}</legend>{body}</fieldset>\n'

    api_key_html = ""
    if api_key_required:
        api_key_html = (
            '<fieldset><legend>Access</legend><div class="field">'
            '<label for="api-key">API Key</label><input type="password" id="api-key">'
            "</div></fieldset>"
        )

    data: dict[str, Any] = {"carriers_by_type": carriers_by_type}
    data_json = json.dumps(data).replace("</", "<\\/")

    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Insurance Application</title>
  <style>
{_CSS}
  </style>
</head>
<body>
<header>
  <h1>Insurance Application</h1>
  <span class="version">Iris {__version__}</span>
</header>
<nav class="sections">{nav}</nav>
<div class="layout">
  <form id="application" novalidate>
    {api_key_html}
    {sections_html}
    <div id="status"></div>
    <div class="actions">
      <button type="submit">Submit Application</button>
      <button type="button" class="secondary" id="load-sample">Load Sample Data</button>
    </div>
  </form>
  <aside class="totals">
    <h3>Quote</h3>
    <table>
      <thead><tr><td></td><td class="num">Premium</td><td class="num">Commission</td></tr></thead>
      <tbody id="totals-body"></tbody>
    </table>
  </aside>
</div>
<script type="application/json" id="iris-data">{data_json}</script>
<script>
{_JS}
</script>
</body>
</html>
"""
