# ABOUTME: Tests for best-session feed selection
# ABOUTME: Covers per-day limits, site resolution by token or ids, eligibility and daylight gating

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from waterman.calendar.selector import FeedSelector
from waterman.forecast.models import ForecastSlot, Site, datetime_to_ms
from waterman.scoring.models import ConditionScore
from waterman.scoring.scorer import StoredScoreScorer
from waterman.store.memory import DataStore

NOW = datetime(2026, 6, 15, 6, 0, tzinfo=timezone.utc)


def at(hour, day=15, minute=0):
    return datetime_to_ms(datetime(2026, 6, day, hour, minute, tzinfo=timezone.utc))


def make_site(site_id, sports=("wingfoil",)):
    return Site(
        id=site_id,
        name=site_id.upper(),
        country="Portugal",
        latitude=38.64,
        longitude=-9.24,
        sports=list(sports),
        timezone="Europe/Lisbon",
    )


def seed(store, site_id, entries, sport="wingfoil", user_id=None, with_slots=True):
    """Store one batch of slots for a site plus a score per (timestamp, score) entry"""
    slots = [
        ForecastSlot(site_id=site_id, timestamp=ts, speed=20.0, gust=24.0, direction=300, scrape_timestamp=1)
        for ts, _ in entries
    ]
    if with_slots:
        store.save_forecast(site_id, slots, [], scrape_timestamp=1)
    store.save_scores([
        ConditionScore(
            site_id=site_id, sport=sport, timestamp=ts, score=score, reasoning=f"{site_id} {score}",
            user_id=user_id, slot_id=slot.slot_id,
        )
        for (ts, score), slot in zip(entries, slots)
    ])


def make_selector(store):
    return FeedSelector(store, StoredScoreScorer(store), max_workers=3)


def five_site_store():
    store = DataStore()
    for site_id in ["s1", "s2", "s3", "s4", "s5"]:
        store.add_site(make_site(site_id))

    seed(store, "s1", [(at(12), 80), (at(14), 88), (at(13, day=16), 85)])
    seed(store, "s2", [(at(12), 95), (at(14), 93)])
    seed(store, "s3", [(at(12), 77), (at(11, day=16), 85)])
    seed(store, "s4", [(at(12), 90)])
    seed(store, "s5", [(at(12), 60)])
    return store


class TestSelection:
    """Tests for per-day best-session selection"""

    def test_two_per_day_best_per_site(self):
        """Each site contributes its best per day; top two fill the day"""
        feed = make_selector(five_site_store()).get_sport_feed("wingfoil", now=NOW)

        assert [(e.site_id, e.score) for e in feed.events] == [
            ("s2", 95),
            ("s4", 90),
            ("s3", 85),
            ("s1", 85),
        ]

    def test_sorted_ascending(self):
        feed = make_selector(five_site_store()).get_sport_feed("wingfoil", now=NOW)

        timestamps = [e.timestamp for e in feed.events]
        assert timestamps == sorted(timestamps)

    def test_never_more_than_two_per_day(self):
        feed = make_selector(five_site_store()).get_sport_feed("wingfoil", now=NOW)

        days = [datetime.fromtimestamp(e.timestamp / 1000, tz=timezone.utc).date() for e in feed.events]
        assert all(days.count(day) <= 2 for day in days)

    def test_threshold_inclusive(self):
        store = DataStore()
        store.add_site(make_site("a"))
        store.add_site(make_site("b"))
        seed(store, "a", [(at(12), 75)])
        seed(store, "b", [(at(12, day=16), 74)])

        feed = make_selector(store).get_sport_feed("wingfoil", now=NOW)

        assert [e.site_id for e in feed.events] == ["a"]

    def test_window_is_seven_days(self):
        store = DataStore()
        store.add_site(make_site("a"))
        inside = datetime_to_ms(NOW + timedelta(days=6, hours=6))
        outside = datetime_to_ms(NOW + timedelta(days=7, hours=6))
        past = at(5)
        seed(store, "a", [(past, 95), (inside, 80), (outside, 99)])

        feed = make_selector(store).get_sport_feed("wingfoil", now=NOW)

        assert [e.timestamp for e in feed.events] == [inside]

    def test_tie_keeps_first_encountered(self):
        store = DataStore()
        store.add_site(make_site("a"))
        seed(store, "a", [(at(10), 88), (at(15), 88)])

        feed = make_selector(store).get_sport_feed("wingfoil", now=NOW)

        assert [e.timestamp for e in feed.events] == [at(10)]

    def test_user_scores_ignored(self):
        store = DataStore()
        store.add_site(make_site("a"))
        seed(store, "a", [(at(12), 99)], user_id="u1")

        feed = make_selector(store).get_sport_feed("wingfoil", now=NOW)

        assert feed.events == []

    def test_event_carries_slot_conditions(self):
        feed = make_selector(five_site_store()).get_sport_feed("wingfoil", now=NOW)
        event = feed.events[0]

        assert event.site_name == "S2"
        assert event.country == "Portugal"
        assert event.conditions.speed == 20.0
        assert event.conditions.direction == 300
        assert event.reasoning == "s2 95"
        assert event.slot_id == f"s2:{at(12)}:1"


class TestGaps:
    """Scores that can't be resolved are dropped"""

    def test_missing_slot_dropped(self):
        store = DataStore()
        store.add_site(make_site("a"))
        seed(store, "a", [(at(12), 95)], with_slots=False)

        feed = make_selector(store).get_sport_feed("wingfoil", now=NOW)

        assert feed.events == []

    def test_slot_found_by_timestamp_without_slot_id(self):
        store = DataStore()
        store.add_site(make_site("a"))
        slot = ForecastSlot(site_id="a", timestamp=at(12), speed=20.0, gust=24.0, direction=300, scrape_timestamp=1)
        store.save_forecast("a", [slot], [], scrape_timestamp=1)
        store.save_scores([ConditionScore(site_id="a", sport="wingfoil", timestamp=at(12), score=90, reasoning="Good")])

        feed = make_selector(store).get_sport_feed("wingfoil", now=NOW)

        assert [e.slot_id for e in feed.events] == [slot.slot_id]

    def test_night_slot_dropped(self):
        store = DataStore()
        store.add_site(make_site("a"))
        seed(store, "a", [(at(22, minute=30), 95)])

        selector = make_selector(store)

        assert selector.get_sport_feed("wingfoil", now=NOW).events == []
        assert len(selector.get_sport_feed("wingfoil", now=NOW, require_daylight=False).events) == 1


class TestSiteResolution:
    """Tests for explicit ids, tokens and the default directory"""

    def personalized_store(self):
        store = five_site_store()
        store.add_site(make_site("surf-only", sports=("surfing",)))
        store.set_favorite_sites("u1", ["s1", "s3", "surf-only"])
        return store

    def test_token_selects_favorites(self):
        store = self.personalized_store()
        sub = store.issue_subscription("u1", "wingfoil")

        feed = make_selector(store).get_sport_feed("wingfoil", token=sub.token, now=NOW)

        assert feed.metadata.is_personalized
        assert feed.metadata.site_count == 2
        assert {e.site_id for e in feed.events} == {"s1", "s3"}

    def test_token_records_access(self):
        store = self.personalized_store()
        sub = store.issue_subscription("u1", "wingfoil")

        make_selector(store).get_sport_feed("wingfoil", token=sub.token, now=NOW)

        assert sub.access_count == 1
        assert sub.last_accessed_at == datetime_to_ms(NOW)

    def test_invalid_token_falls_through(self):
        feed = make_selector(self.personalized_store()).get_sport_feed("wingfoil", token="nope", now=NOW)

        assert not feed.metadata.is_personalized
        assert feed.metadata.site_count == 5

    def test_inactive_token_falls_through(self):
        store = self.personalized_store()
        sub = store.issue_subscription("u1", "wingfoil")
        sub.is_active = False

        feed = make_selector(store).get_sport_feed("wingfoil", token=sub.token, now=NOW)

        assert not feed.metadata.is_personalized
        assert sub.access_count == 0

    def test_explicit_ids_used_verbatim(self):
        store = self.personalized_store()
        sub = store.issue_subscription("u1", "wingfoil")

        feed = make_selector(store).get_sport_feed(
            "wingfoil", site_ids=["s4", "surf-only", "unknown"], token=sub.token, now=NOW
        )

        assert feed.metadata.site_count == 2
        assert not feed.metadata.is_personalized
        assert [e.site_id for e in feed.events] == ["s4"]
        assert sub.access_count == 0

    def test_default_is_all_sites_for_sport(self):
        feed = make_selector(self.personalized_store()).get_sport_feed("surfing", now=NOW)

        assert feed.metadata.site_count == 1
        assert feed.metadata.sport == "surfing"

    def test_empty_site_set(self):
        store = DataStore()
        scorer = MagicMock()

        feed = FeedSelector(store, scorer).get_sport_feed("kitesurfing", now=NOW)

        assert feed.events == []
        assert feed.metadata.site_count == 0
        scorer.get_scores.assert_not_called()

    def test_scorer_receives_window(self):
        store = DataStore()
        store.add_site(make_site("a"))
        scorer = MagicMock()
        scorer.get_scores.return_value = []

        FeedSelector(store, scorer).get_sport_feed("wingfoil", now=NOW)

        site, sport, time_range = scorer.get_scores.call_args.args
        assert site.id == "a"
        assert sport == "wingfoil"
        assert time_range == (datetime_to_ms(NOW), datetime_to_ms(NOW + timedelta(days=7)))
        assert scorer.get_scores.call_args.kwargs["user_id"] is None
