"""Tests for derived display values: age, injury day, date formatting, labels."""

from datetime import date, datetime, time, timedelta

from trauma_one.models.admission import Admission
from trauma_one.models.patient import Patient
from trauma_one.services.derived import (
    MISSING,
    admission_chat_text,
    age,
    display_age,
    format_date,
    format_injury_datetime,
    format_time,
    injury_day,
    patient_label,
)

TODAY = date(2024, 7, 12)


class TestAge:
    def test_born_today_is_zero(self):
        assert age(TODAY, as_of=TODAY) == 0

    def test_one_year_and_one_day_ago_is_one(self):
        born = TODAY.replace(year=TODAY.year - 1) - timedelta(days=1)
        assert age(born, as_of=TODAY) == 1

    def test_one_day_short_of_a_year_is_zero(self):
        born = TODAY.replace(year=TODAY.year - 1) + timedelta(days=1)
        assert age(born, as_of=TODAY) == 0

    def test_birthday_today(self):
        assert age(date(1984, 7, 12), as_of=TODAY) == 40

    def test_accepts_iso_string(self):
        assert age("1984-03-09", as_of=TODAY) == 40

    def test_missing_birthdate(self):
        assert age(None, as_of=TODAY) is None
        assert age("", as_of=TODAY) is None

    def test_display_age_sentinel(self):
        assert display_age(None) == MISSING == "-"
        assert display_age(date(2000, 1, 1), as_of=TODAY) == "24"


class TestInjuryDay:
    def test_same_day(self):
        assert injury_day(TODAY, as_of=datetime(2024, 7, 12, 23, 59)) == 0

    def test_whole_days_floor(self):
        assert injury_day(date(2024, 7, 10), as_of=datetime(2024, 7, 12, 8, 0)) == 2

    def test_accepts_date_as_of(self):
        assert injury_day("2024-07-01", as_of=TODAY) == 11

    def test_missing_date(self):
        assert injury_day(None, as_of=TODAY) is None


class TestFormatting:
    def test_date_and_time(self):
        assert format_injury_datetime(date(2024, 7, 12), time(14, 30)) == "Fri, 12 Jul 2024, 14:30"

    def test_date_only(self):
        assert format_injury_datetime("2024-07-12", None) == "Fri, 12 Jul 2024"

    def test_neither(self):
        assert format_injury_datetime(None, None) == "-"

    def test_time_without_date_is_missing(self):
        assert format_injury_datetime(None, "14:30:00") == "-"

    def test_format_date(self):
        assert format_date("2024-07-02") == "07/02/2024"
        assert format_date(None) == "-"

    def test_format_time(self):
        assert format_time("14:05:00") == "02:05 PM"
        assert format_time(time(9, 0)) == "09:00 AM"
        assert format_time("") == "-"


class TestPatientLabel:
    def test_full_label(self):
        patient = Patient(
            id="p-1",
            first_name="Ana",
            last_name="Reyes",
            birthdate="1992-11-21",
            sex="Female",
            hospital_registration_number="TO-2",
        )
        assert patient_label(patient) == "Ana Reyes (TO-2) - 1992-11-21 - Female"

    def test_missing_parts_are_omitted(self):
        patient = Patient(id="p-2", first_name="Miguel", last_name="Santos", sex="Male")
        assert patient_label(patient) == "Miguel Santos - Male"


class TestAdmissionChatText:
    def test_contains_sections_in_order(self):
        patient = Patient(
            id="p-1", first_name="Carlos", last_name="Mendoza", birthdate="1984-03-09", sex="Male"
        )
        admission = Admission(
            id="a-1",
            patient_id="p-1",
            chief_complaint="Motorcycle collision",
            date_of_injury="2024-07-10",
            time_of_injury="21:40:00",
            hr=104,
            temperature=37.2,
        )
        text = admission_chat_text(patient, admission, as_of=TODAY)
        assert text.startswith("Name: Carlos Mendoza\nSex: Male\nAge: 40")
        assert "Chief Complaint: Motorcycle collision" in text
        assert "Date of injury: 07/10/2024" in text
        assert "Time of Injury: 09:40 PM" in text
        assert "HR: 104" in text
        assert "RR: -" in text
        assert "Temperature: 37.2" in text
        assert text.index("Diagnosis:") < text.index("Surgical Plan:")
