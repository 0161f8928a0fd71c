import unittest
from datetime import datetime, timedelta, timezone

from tools.vocabulary import (
    annual_to_hourly,
    build_keywords,
    build_meta_description,
    derive_salary_fields,
    detect_experience_level,
    detect_job_type,
    detect_shift_type,
    detect_specialty,
    generate_job_slug,
    hourly_to_annual,
    lookup_specialty,
    normalize_city,
    normalize_experience_level,
    normalize_job_type,
    normalize_shift_type,
    normalize_specialty,
    normalize_state,
    normalize_zip_code,
    parse_date,
    parse_location,
    parse_salary,
)


class TestLegacyMappings(unittest.TestCase):
    def test_job_types(self):
        cases = {
            "Full Time": "full-time",
            "FULL-TIME": "full-time",
            "PRN": "per-diem",
            "Per Diem": "per-diem",
            "per-diem": "per-diem",
            "Temporary": "contract",
            "Seasonal": "contract",
            "Travel": "travel",
            "Part-Time, Days": "part-time",
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(normalize_job_type(raw), expected)
        self.assertIsNone(normalize_job_type("unknown"))
        self.assertIsNone(normalize_job_type(""))

    def test_specialties(self):
        cases = {
            "All Specialties": "General Nursing",
            "L&D": "Labor & Delivery",
            "Med Surg": "Med-Surg",
            "med-surg": "Med-Surg",
            "Critical Care": "ICU",
            "Home Care": "Home Health",
            "Underwater Basket Weaving": "General Nursing",
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(normalize_specialty(raw), expected)
        self.assertIsNone(normalize_specialty(""))

    def test_lookup_specialty_does_not_fall_back(self):
        self.assertEqual(lookup_specialty("critical care"), "ICU")
        self.assertIsNone(lookup_specialty("Underwater Basket Weaving"))

    def test_experience_levels(self):
        cases = {
            "Senior": "experienced",
            "Entry Level": "experienced",
            "entry-level": "experienced",
            "New Grad": "new-grad",
            "new-grad": "new-grad",
            "Charge": "leadership",
            "Something Else": "experienced",
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(normalize_experience_level(raw), expected)
        self.assertIsNone(normalize_experience_level(" "))

    def test_shift_types(self):
        self.assertEqual(normalize_shift_type("Night Shift"), "nights")
        self.assertEqual(normalize_shift_type("3rd shift"), "nights")
        self.assertEqual(normalize_shift_type("Days/Nights"), "rotating")
        self.assertEqual(normalize_shift_type("Flexible"), "variable")


class TestLocation(unittest.TestCase):
    def test_states(self):
        self.assertEqual(normalize_state("New York"), "NY")
        self.assertEqual(normalize_state("ny"), "NY")
        self.assertEqual(normalize_state("Calif"), "CA")
        self.assertEqual(normalize_state("Fla."), "FL")
        self.assertIsNone(normalize_state("Narnia"))

    def test_cities(self):
        self.assertEqual(normalize_city("st. louis"), "St. Louis")
        self.assertEqual(normalize_city("FT LAUDERDALE"), "Ft. Lauderdale")
        self.assertEqual(normalize_city("winston-salem"), "Winston-Salem")

    def test_zip_code(self):
        self.assertEqual(normalize_zip_code("14642-0001"), "14642")
        self.assertIsNone(normalize_zip_code("146"))

    def test_parse_location_formats(self):
        self.assertEqual(
            parse_location("Rochester, NY 14642"),
            {"city": "Rochester", "state": "NY", "zip_code": "14642", "is_remote": False},
        )
        self.assertEqual(parse_location("NY - Binghamton")["city"], "Binghamton")
        self.assertEqual(parse_location("Boston, Massachusetts, USA")["state"], "MA")

    def test_parse_location_remote(self):
        location = parse_location("Remote")
        self.assertTrue(location["is_remote"])
        self.assertIsNone(location["city"])

    def test_parse_location_facility_map(self):
        facilities = {"Strong Memorial Hospital": {"city": "Rochester", "state": "New York"}}
        location = parse_location("Strong Memorial Hospital", facilities)
        self.assertEqual((location["city"], location["state"]), ("Rochester", "NY"))


class TestDetection(unittest.TestCase):
    def test_specialty_from_title(self):
        self.assertEqual(detect_specialty("RN - Labor and Delivery"), "Labor & Delivery")
        self.assertEqual(detect_specialty("Registered Nurse - ICU"), "ICU")
        self.assertEqual(detect_specialty("RN - OR"), "OR")

    def test_lowercase_or_is_not_operating_room(self):
        self.assertNotEqual(detect_specialty("LPN or RN - Long Term Care"), "OR")

    def test_specialty_from_description_and_fallback(self):
        self.assertEqual(detect_specialty("Registered Nurse", "Join our emergency department team."), "ER")
        self.assertEqual(detect_specialty("Registered Nurse", "Great benefits."), "General Nursing")

    def test_job_type(self):
        self.assertEqual(detect_job_type("Per Diem RN"), "per-diem")
        self.assertEqual(detect_job_type("Registered Nurse", "This is a part-time position."), "part-time")
        self.assertIsNone(detect_job_type("Registered Nurse", "Full-time and part-time openings."))

    def test_shift_type(self):
        self.assertEqual(detect_shift_type("RN - Nights"), "nights")
        self.assertEqual(detect_shift_type("Registered Nurse", "Openings on days and nights."), "variable")

    def test_experience_level(self):
        self.assertEqual(detect_experience_level("Nurse Manager - ICU"), "leadership")
        self.assertEqual(detect_experience_level("New Grad RN Residency"), "new-grad")
        self.assertEqual(
            detect_experience_level("Registered Nurse", "Requires 2 years of nursing experience."), "experienced"
        )
        self.assertIsNone(detect_experience_level("Registered Nurse", "1 year experience preferred."))


class TestSalary(unittest.TestCase):
    def test_hourly_range(self):
        self.assertEqual(parse_salary("$45.00 - $60.00 per hour"), (45.0, 60.0, "hourly"))

    def test_annual_range(self):
        self.assertEqual(parse_salary("$95,000 - $120,000 annually"), (95000.0, 120000.0, "annual"))

    def test_single_hourly_figure(self):
        self.assertEqual(parse_salary("Pay: $38/hr"), (38.0, 38.0, "hourly"))

    def test_require_context_ignores_unrelated_dollars(self):
        self.assertEqual(
            parse_salary("We donated $50,000 to the local food bank.", require_context=True), (None, None, None)
        )

    def test_implausible_values_are_rejected(self):
        self.assertEqual(parse_salary("$2 - $3 per hour"), (None, None, None))

    def test_derive_from_hourly(self):
        fields = derive_salary_fields(45.0, 60.0, "hourly")
        self.assertEqual(fields["salary_min_hourly"], 45.0)
        self.assertEqual(fields["salary_min_annual"], 93600.0)
        self.assertEqual(fields["salary_max_annual"], 124800.0)

    def test_derive_from_annual(self):
        fields = derive_salary_fields(95000.0, 120000.0, "annual")
        self.assertEqual(fields["salary_max_annual"], 120000.0)
        self.assertEqual(fields["salary_min_hourly"], 45.67)
        self.assertEqual(fields["salary_max_hourly"], 57.69)

    def test_derive_without_type(self):
        self.assertEqual(set(derive_salary_fields(None, None, None).values()), {None})

    def test_unit_conversion_round_trips(self):
        for hourly in (18.5, 45.37, 72.0, 99.99):
            with self.subTest(hourly=hourly):
                self.assertAlmostEqual(annual_to_hourly(hourly_to_annual(hourly)), hourly, places=6)
        for annual in (41600.0, 95000.0, 123457.0):
            with self.subTest(annual=annual):
                self.assertAlmostEqual(hourly_to_annual(annual_to_hourly(annual)), annual, places=4)


class TestSlugAndSeo(unittest.TestCase):
    URL = "https://careers.uhs.example/job/12345"

    def test_job_slug_is_deterministic(self):
        slug = generate_job_slug("Registered Nurse - ICU", "Rochester", "NY", "uhs", self.URL)
        self.assertEqual(slug, generate_job_slug("Registered Nurse - ICU", "Rochester", "NY", "uhs", self.URL))
        self.assertTrue(slug.startswith("registered-nurse-icu-rochester-ny-uhs-"))
        self.assertRegex(slug, r"^[a-z0-9-]+$")

    def test_job_slug_differs_per_url(self):
        a = generate_job_slug("Registered Nurse", "Rochester", "NY", "uhs", self.URL)
        b = generate_job_slug("Registered Nurse", "Rochester", "NY", "uhs", self.URL + "?x=1")
        self.assertNotEqual(a, b)

    def test_job_slug_length_is_bounded(self):
        slug = generate_job_slug("Registered Nurse " * 20, "Rancho Santa Margarita", "CA", "x" * 60, self.URL)
        self.assertLessEqual(len(slug), 100)
        self.assertFalse(slug.startswith("-"))

    def test_meta_description(self):
        self.assertEqual(
            build_meta_description("Registered Nurse - ICU", "Rochester", "NY", "ICU", "full-time", "UHS"),
            "Registered Nurse - ICU in Rochester, NY (ICU specialty) - Full-Time. Find RN nursing jobs at UHS.",
        )

    def test_keywords_are_lowercase_and_unique(self):
        self.assertEqual(
            build_keywords("Rochester", "NY", "ICU", "UHS"),
            ["registered nurse", "rn jobs", "nursing jobs", "rochester", "ny", "icu", "uhs"],
        )


class TestDates(unittest.TestCase):
    NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)

    def test_absolute_formats(self):
        expected = datetime(2026, 1, 5, tzinfo=timezone.utc)
        self.assertEqual(parse_date("2026-01-05"), expected)
        self.assertEqual(parse_date("01/05/2026"), expected)
        self.assertEqual(parse_date("January 5, 2026"), expected)

    def test_relative_formats(self):
        self.assertEqual(parse_date("Posted Today", self.NOW), self.NOW)
        self.assertEqual(parse_date("Posted 3 Days Ago", self.NOW), self.NOW - timedelta(days=3))
        self.assertEqual(parse_date("Posted 30+ Days Ago", self.NOW), self.NOW - timedelta(days=30))

    def test_unparseable(self):
        self.assertIsNone(parse_date("whenever"))
        self.assertIsNone(parse_date("3 days ago"))


if __name__ == "__main__":
    unittest.main()
