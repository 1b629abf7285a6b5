from careloop.labs.extractor import compute_flag, extract_lab_values, parse_lab_line, parse_reference_range
from careloop.labs.reference import normalize_lab_name, typical_range

SAMPLE_REPORT = """DISCHARGE SUMMARY (SYNTHETIC DEMO)

Reason for admission: chest discomfort, shortness of breath.

ECG: sinus rhythm. No acute ischemic changes.
Labs:
- Troponin I: 0.01 ng/mL (ref 0.00–0.04)
- CRP: 18 mg/L (ref 0–5)
- WBC: 12.4 x10^9/L (ref 4.0–10.0)
- Hemoglobin: 138 g/L (ref 120–160)
- Creatinine: 92 umol/L (ref 45–90)

Plan: follow-up with primary care."""


def test_crp_line_with_explicit_reference_is_flagged_high() -> None:
    labs = extract_lab_values("CRP: 12 mg/L (ref 0-5)")

    assert len(labs) == 1
    lab = labs[0]
    assert lab.name == "CRP"
    assert lab.normalized_name == "crp"
    assert lab.value == 12
    assert lab.unit == "mg/L"
    assert lab.ref_low == 0
    assert lab.ref_high == 5
    assert lab.flag == "high"
    assert lab.range_source == "explicit"
    assert lab.verified is True


def test_sample_report_extracts_tabular_labs_only() -> None:
    labs = extract_lab_values(SAMPLE_REPORT)

    assert [lab.normalized_name for lab in labs] == ["troponin_i", "crp", "wbc", "hemoglobin", "creatinine"]
    flags = {lab.normalized_name: lab.flag for lab in labs}
    assert flags == {
        "troponin_i": "normal",
        "crp": "high",
        "wbc": "high",
        "hemoglobin": "normal",
        "creatinine": "high",
    }
    wbc = labs[2]
    assert wbc.unit == "x10^9/L"
    assert (wbc.ref_low, wbc.ref_high) == (4.0, 10.0)


def test_lab_evidence_points_at_source_line() -> None:
    labs = extract_lab_values(SAMPLE_REPORT)
    for lab in labs:
        assert SAMPLE_REPORT[lab.evidence.start : lab.evidence.end] == lab.evidence.snippet
        assert lab.name in lab.evidence.snippet


def test_flag_is_pure_function_of_value_and_bounds() -> None:
    assert compute_flag(3.0, 4.0, 10.0) == "low"
    assert compute_flag(11.0, 4.0, 10.0) == "high"
    assert compute_flag(4.0, 4.0, 10.0) == "normal"
    assert compute_flag(10.0, 4.0, 10.0) == "normal"
    assert compute_flag(2.0, None, 3.0) == "normal"
    assert compute_flag(0.8, 1.0, None) == "low"
    assert compute_flag(5.0, None, None) == "unknown"


def test_parenthesized_range_wins_over_keyword_range() -> None:
    assert parse_reference_range(" ref 11-15 (12.0-16.0)") == (12.0, 16.0)
    lab = parse_lab_line("Hemoglobin: 13.5 g/dL ref 11-15 (12.0-16.0)")
    assert lab is not None
    assert (lab.ref_low, lab.ref_high) == (12.0, 16.0)


def test_keyword_range_without_parentheses() -> None:
    lab = parse_lab_line("TSH 5.2 mIU/L reference range 0.4 - 4.0")
    assert lab is not None
    assert lab.normalized_name == "tsh"
    assert (lab.ref_low, lab.ref_high) == (0.4, 4.0)
    assert lab.flag == "high"


def test_one_sided_ranges_set_single_bound() -> None:
    ldl = parse_lab_line("LDL: 2.1 mmol/L (<3.0)")
    hdl = parse_lab_line("HDL: 0.9 mmol/L (>1.0)")

    assert ldl is not None and hdl is not None
    assert (ldl.ref_low, ldl.ref_high, ldl.flag) == (None, 3.0, "normal")
    assert (hdl.ref_low, hdl.ref_high, hdl.flag) == (1.0, None, "low")


def test_reversed_range_is_normalized() -> None:
    assert parse_reference_range("(10-4)") == (4.0, 10.0)


def test_comma_decimal_and_qualifier() -> None:
    lab = parse_lab_line("CRP: <0,5 mg/L (ref 0-5)")
    assert lab is not None
    assert lab.value == 0.5
    assert lab.qualifier == "<"
    assert lab.flag == "normal"


def test_typical_range_used_when_line_has_none() -> None:
    lab = parse_lab_line("Fasting glucose: 6.1 mmol/L")
    assert lab is not None
    assert lab.normalized_name == "glucose"
    assert (lab.ref_low, lab.ref_high) == (3.9, 5.5)
    assert lab.range_source == "typical"
    assert lab.flag == "high"


def test_typical_range_is_unit_aware() -> None:
    assert typical_range("glucose", "mg/dL").low == 70.0
    assert typical_range("hemoglobin", "g/dL").high == 17.5
    assert typical_range("wbc", "×10^9/L") is not None
    assert typical_range("glucose", None) is None
    assert typical_range("alt", None).high == 56.0
    assert typical_range("glucose", "furlongs") is None


def test_unknown_analyte_without_range_gets_unknown_flag() -> None:
    lab = parse_lab_line("Ferritin: 80 ng/mL")
    assert lab is not None
    assert lab.normalized_name == "ferritin"
    assert lab.flag == "unknown"
    assert lab.range_source == "none"


def test_narrative_lines_are_ignored() -> None:
    assert extract_lab_values("Patient walked 5 km yesterday.\nSeen 2 times this week.") == []


def test_overlong_lines_are_skipped() -> None:
    line = "CRP: 12 mg/L (ref 0-5) " + "x" * 200
    assert extract_lab_values(line) == []


def test_duplicates_keep_first_occurrence_and_cap_applies() -> None:
    text = "CRP: 12 mg/L (ref 0-5)\nCRP: 3 mg/L (ref 0-5)\nCRP: 1.1 mg/dL\nWBC: 5 x10^9/L"
    labs = extract_lab_values(text)

    assert [(lab.normalized_name, lab.value) for lab in labs] == [("crp", 12.0), ("crp", 1.1), ("wbc", 5.0)]
    assert len(extract_lab_values(text, max_results=1)) == 1


def test_alias_normalization() -> None:
    assert normalize_lab_name("Hb A1c") == "hba1c"
    assert normalize_lab_name("C-reactive protein") == "crp"
    assert normalize_lab_name("Haemoglobin") == "hemoglobin"
    assert normalize_lab_name("Troponin I") == "troponin_i"


def test_parenthetical_names_resolve_through_alias_table() -> None:
    assert normalize_lab_name("C-reactive protein (CRP)") == "crp"
    assert normalize_lab_name("TSH (thyroid stimulating hormone)") == "tsh"
    assert normalize_lab_name("Glucose (fasting)") == "glucose"
    assert normalize_lab_name("Vitamin D (25-OH)") == "vitamin_d_25_oh"

    crp = parse_lab_line("C-reactive protein (CRP): 12 mg/L (ref 0-5)")
    tsh = parse_lab_line("TSH (thyroid stimulating hormone): 5.2 mIU/L")
    glucose = parse_lab_line("Glucose (fasting): 6.1 mmol/L")

    assert crp is not None and tsh is not None and glucose is not None
    assert (crp.normalized_name, crp.flag, crp.range_source) == ("crp", "high", "explicit")
    assert (tsh.normalized_name, tsh.flag, tsh.range_source) == ("tsh", "high", "typical")
    assert (glucose.ref_low, glucose.ref_high) == (3.9, 5.5)
    assert (glucose.normalized_name, glucose.flag) == ("glucose", "high")


def test_delimited_narrative_without_measurement_unit_is_ignored() -> None:
    narrative = ["Date of birth: 12 March 1980", "Age: 45 years", "Follow-up: 2 weeks"]
    for line in narrative:
        assert parse_lab_line(line) is None
    assert extract_lab_values("\n".join(narrative)) == []

    lab = parse_lab_line("Vitamin B12: 350 pmol/L")
    assert lab is not None
    assert lab.unit == "pmol/L"


def test_thousands_separator_and_per_microlitre_unit() -> None:
    lab = parse_lab_line("Platelets: 250,000 /uL")

    assert lab is not None
    assert lab.value == 250000.0
    assert lab.unit == "/uL"
    assert (lab.ref_low, lab.ref_high) == (150000.0, 400000.0)
    assert lab.range_source == "typical"
    assert lab.flag == "normal"

    low = parse_lab_line("WBC: 3,200 /uL (4,000-11,000)")
    assert low is not None
    assert (low.value, low.ref_low, low.ref_high, low.flag) == (3200.0, 4000.0, 11000.0, "low")

    # A leading zero keeps the comma as a decimal mark.
    decimal = parse_lab_line("CRP: 0,500 mg/L")
    assert decimal is not None
    assert decimal.value == 0.5


def test_unitless_line_only_uses_single_entry_typical_range() -> None:
    alt = parse_lab_line("ALT: 80")
    glucose = parse_lab_line("Glucose: 6.1")

    assert alt is not None and glucose is not None
    assert (alt.ref_high, alt.flag) == (56.0, "high")
    assert (glucose.ref_low, glucose.ref_high, glucose.flag) == (None, None, "unknown")
