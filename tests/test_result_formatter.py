from conftest import hit, page_result
from prospect_search.query.entities import EntityType
from prospect_search.services.result_formatter import ResultFormatter


class TestResultFormatter:
    def setup_method(self):
        self.formatter = ResultFormatter()

    def test_phone_first_then_email_stable_order(self):
        # both > phone only > email only > neither, engine order within each group
        results = page_result([
            hit("plain-1"),
            hit("email-1", emails=[{"email": "a@x.com", "type": "work"}]),
            hit("phone-1", phone_numbers=[{"phone_number": "+1 555", "type": "mobile"}]),
            hit("plain-2"),
            hit("both-1", emails=["b@x.com"], mobile_number="+1 556"),
            hit("email-2", email="c@x.com"),
        ], total=6)

        response = self.formatter.format(results, EntityType.CONTACT)

        assert [item["id"] for item in response["data"]] == [
            "both-1", "phone-1", "email-1", "email-2", "plain-1", "plain-2",
        ]

    def test_meta_and_filters_echo(self):
        results = page_result([hit("1")], total=42, page=2, per_page=10)
        response = self.formatter.format(results, EntityType.CONTACT, {"contact": {"seniority": "VP"}})

        assert response["meta"] == {"current_page": 2, "per_page": 10, "total": 42, "last_page": 5}
        assert response["filters"] == {"contact": {"seniority": "VP"}}

    def test_hit_shape(self):
        row = hit("abc", full_name="Jane Doe")
        row["highlight"] = {"full_name": ["<mark>Jane</mark> Doe"]}

        item = self.formatter.format_hit(row, EntityType.CONTACT)

        assert item["id"] == item["_id"] == "abc"
        assert item["attributes"]["id"] == "abc"
        assert item["attributes"]["has_contact_email"] is False
        assert item["highlights"] == {"full_name": ["<mark>Jane</mark> Doe"]}

    def test_company_synonyms(self):
        row = hit(
            "co", name="Acme", company_domain="acme.com", business_category="Software",
            linkedin_url="linkedin.com/company/acme", employee_count="1,200", twitter_url="t.co/acme",
            company_phone="+1 555",
        )
        attributes = self.formatter.format_hit(row, EntityType.COMPANY)["attributes"]

        assert attributes["company"] == "Acme"
        assert attributes["domain"] == "acme.com"
        assert attributes["website"] == "acme.com"
        assert attributes["industry"] == "Software"
        assert attributes["company_linkedin_url"] == "linkedin.com/company/acme"
        assert attributes["number_of_employees"] == 1200
        assert attributes["social_media"] == {"twitter_url": "t.co/acme"}
        assert attributes["has_contact_phone"] is True
        assert attributes["has_contact_email"] is False

    def test_address_from_location(self):
        row = hit("1", location={"city": "Austin", "state": "TX", "country": "US"})
        attributes = self.formatter.format_hit(row, EntityType.CONTACT)["attributes"]
        assert attributes["address"] == "Austin, TX, US"

    def test_typed_contact_info_wins(self):
        row = hit(
            "1",
            emails=[
                {"email": "me@home.net"},
                {"email": "jane@acme.com", "type": "Work"},
                {"email": "jd@gmail.com", "type": "personal"},
            ],
            phone_numbers=[
                {"phone_number": "111"},
                {"phone_number": "222", "type": "direct"},
                {"phone_number": "333"},
            ],
        )
        attributes = self.formatter.format_hit(row, EntityType.CONTACT)["attributes"]

        assert attributes["work_email"] == "jane@acme.com"
        assert attributes["personal_email"] == "jd@gmail.com"
        assert attributes["mobile_number"] == "111"
        assert attributes["direct_number"] == "222"

    def test_untyped_contact_info_is_positional(self):
        row = hit("1", emails=["a@x.com", "b@x.com"], phone_numbers=[{"phone_number": "111"}])
        attributes = self.formatter.format_hit(row, EntityType.CONTACT)["attributes"]

        assert attributes["work_email"] == "a@x.com"
        assert attributes["personal_email"] == "b@x.com"
        assert attributes["mobile_number"] == "111"
        assert attributes["direct_number"] is None


class TestAggregationFormatting:
    def test_shapes(self):
        formatted = ResultFormatter().format_aggregations({
            "departments": {"buckets": [
                {"key": "Sales", "doc_count": 12},
                {"key": "", "doc_count": 3},
                {"key": "Marketing", "doc_count": 0},
            ]},
            "employee_count": {"buckets": [{"key": "1-10", "from": 1, "to": 10, "doc_count": 4}]},
            "has_linkedin": {"buckets": {"known": {"doc_count": 7}, "unknown": {"doc_count": 2}}},
            "has_email": {"doc_count": 5},
            "broken": {"value": 1},
        })

        assert formatted == {
            "departments": [{"key": "Sales", "count": 12}, {"key": "Marketing", "count": 0}],
            "employee_count": [{"key": "1-10", "count": 4}],
            "has_linkedin": {"known": 7, "unknown": 2},
            "has_email": 5,
        }
