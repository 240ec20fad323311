"""
Tests for the lightweight (directory-only) prospect scorer.
"""

import pytest

from prospectflow.schemas import Priority
from prospectflow.services.scoring import (
    build_scored_candidate,
    calculate_prospect_score,
    detect_cheap_hosting,
    get_priority,
    score_and_sort,
)


class TestCalculateProspectScore:
    def test_no_website_scores_sixty(self, make_candidate):
        score, breakdown = calculate_prospect_score(make_candidate(website=None))
        assert score == 60
        assert breakdown.no_website == 60
        assert breakdown.http_only == 0

    def test_no_website_is_always_at_least_sixty(self, make_candidate):
        for kwargs in ({}, {"phone": None}, {"phone": None, "email": None, "address": None}):
            score, _ = calculate_prospect_score(make_candidate(website=None, **kwargs))
            assert score >= 60

    def test_no_website_no_contacts(self, make_candidate):
        score, _ = calculate_prospect_score(
            make_candidate(website=None, phone=None, email=None, address=None)
        )
        assert score == 75

    def test_http_on_cheap_builder(self, make_candidate):
        score, breakdown = calculate_prospect_score(
            make_candidate(website="http://salon.wixsite.com/lyon")
        )
        assert breakdown.http_only == 25
        assert breakdown.cheap_builder == 15
        assert score == 40

    def test_modern_site_with_all_contacts_scores_zero(self, make_candidate):
        score, _ = calculate_prospect_score(make_candidate(website="https://salon-lyon.fr"))
        assert score == 0

    def test_missing_contacts_add_five_each(self, make_candidate):
        score, breakdown = calculate_prospect_score(
            make_candidate(phone=None, email=None, address=None)
        )
        assert score == 15
        assert breakdown.missing_phone == breakdown.missing_email == breakdown.missing_address == 5


class TestCheapHosting:
    def test_builder_match(self):
        assert detect_cheap_hosting("https://monsite.jimdofree.com") == [
            "Site hosted on jimdofree.com (basic site builder)"
        ]

    def test_free_hosting_only_when_no_builder(self):
        findings = detect_cheap_hosting("http://garage.pagesperso-orange.fr")
        # pagesperso-orange.fr is a builder; orange.fr must not be added on top
        assert findings == ["Site hosted on pagesperso-orange.fr (basic site builder)"]

    def test_free_hosting_fallback(self):
        assert detect_cheap_hosting("https://artisan.sfr.fr") == [
            "Site hosted on sfr.fr (free/basic hosting)"
        ]

    def test_case_insensitive(self):
        assert detect_cheap_hosting("https://WWW.E-MONSITE.COM/boulangerie")

    def test_clean_domain(self):
        assert detect_cheap_hosting("https://boulangerie-martin.fr") == []


class TestPriority:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (100, Priority.HOT), (80, Priority.HOT), (79, Priority.HIGH), (60, Priority.HIGH),
            (59, Priority.MEDIUM), (40, Priority.MEDIUM), (39, Priority.LOW), (20, Priority.LOW),
            (19, Priority.COLD), (0, Priority.COLD),
        ],
    )
    def test_buckets(self, score, expected):
        assert get_priority(score) == expected


class TestScoredCandidate:
    def test_issue_order(self, make_candidate):
        scored = build_scored_candidate(make_candidate(website=None, phone=None, address=None, email=None))
        assert scored.issues == [
            "No website found: direct opportunity",
            "No phone number listed",
            "Address not listed on OpenStreetMap",
        ]

    def test_http_and_builder_issues(self, make_candidate):
        scored = build_scored_candidate(make_candidate(website="http://lyon.over-blog.com"))
        assert scored.issues == [
            "Site served over HTTP: no SSL certificate",
            "Site hosted on over-blog.com (basic site builder)",
        ]

    def test_site_quality_left_empty(self, make_candidate):
        scored = build_scored_candidate(make_candidate())
        assert scored.site_quality_score is None
        assert scored.has_website is True
        assert scored.priority == Priority.COLD

    def test_keeps_directory_fields(self, make_candidate):
        record = make_candidate(name="Salon Belle Mèche", raw_tags={"shop": "hairdresser"})
        scored = build_scored_candidate(record)
        assert scored.name == "Salon Belle Mèche"
        assert scored.raw_tags == {"shop": "hairdresser"}
        assert scored.external_id == record.external_id


class TestScoreAndSort:
    def test_sorted_descending(self, make_candidate):
        records = [
            make_candidate(n=1),
            make_candidate(n=2, website=None),
            make_candidate(n=3, website="http://a.free.fr"),
        ]
        scored = score_and_sort(records)
        assert [c.external_id for c in scored] == ["node/2", "node/3", "node/1"]

    def test_ties_keep_directory_order(self, make_candidate):
        records = [make_candidate(n=i, website=None) for i in range(5)]
        scored = score_and_sort(records)
        assert [c.external_id for c in scored] == [f"node/{i}" for i in range(5)]
