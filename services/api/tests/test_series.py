"""Tests for series and movie batch production."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from halcyon_api.services import BatchProducer, EpisodeResult, MovieConfig, SeriesConfig
from halcyon_api.services.episode import AudioPreferences, ProductionSettings
from halcyon_api.services.series import (
    CONFRONTATION_NOTE,
    FINALE_NOTE,
    PREMIERE_NOTE,
    RESOLUTION_NOTE,
    SETUP_NOTE,
    ActConfig,
    CharacterProfile,
    EpisodeConfig,
    SegmentStatus,
    build_act_prompt,
    build_episode_prompt,
    estimate_movie_credits,
    estimate_series_credits,
    generate_default_acts,
)


def episode_result(
    n: int = 1,
    credits_used: int = 100,
    duration: float | None = 30,
    success: bool = True,
    error: str | None = None,
    warnings: tuple[str, ...] = (),
) -> EpisodeResult:
    return EpisodeResult(
        success=success,
        credits_used=credits_used,
        progress=None,
        video_url=f"https://blob/videos/segment-{n}.mp4" if success else None,
        duration=duration if success else None,
        error=error,
        warnings=warnings,
    )


def make_batch(*results, on_progress=None) -> tuple[BatchProducer, MagicMock]:
    producer = MagicMock()
    producer.produce = AsyncMock(side_effect=list(results))
    return BatchProducer(producer, on_progress=on_progress), producer


def harbor_lights(episode_count: int = 3, **overrides) -> SeriesConfig:
    titles = ["Low Tide", "Undertow", "High Water", "Slack Water"]
    config = SeriesConfig(
        title="Harbor Lights",
        synopsis="A retired detective is pulled back into one last case",
        genre="noir",
        season_number=2,
        episode_duration=30,
        setting="A fishing town",
        main_characters=[CharacterProfile(name="Mara", description="a retired detective", role="protagonist")],
        overarching_plot="A smuggling ring unravels",
        episodes=[
            EpisodeConfig(episode_number=i + 1, title=titles[i], synopsis=f"Synopsis {i + 1}")
            for i in range(episode_count)
        ],
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


# ============================================================================
# Estimates
# ============================================================================


class TestEstimates:
    """Tests for batch credit estimates."""

    def test_series_scales_one_episode(self):
        estimate = estimate_series_credits(harbor_lights(episode_count=3))

        assert estimate.per_segment == 92
        assert estimate.segments == 3
        assert estimate.total == 276
        assert estimate.breakdown() == {"video": 180, "music": 15, "voiceover": 6, "assembly": 75}

    def test_series_without_episode_list_uses_count(self):
        config = SeriesConfig(title="T", synopsis="S", episode_count=4)

        estimate = estimate_series_credits(config)

        # one minute default episodes
        assert estimate.per_segment == 177
        assert estimate.total == 708

    def test_movie_defaults_to_three_acts(self):
        estimate = estimate_movie_credits(MovieConfig(title="T", synopsis="S", target_duration=5))

        # 100 second acts: 20 shots, 2 narration credits, 84 assembly credits
        assert estimate.segments == 3
        assert estimate.per_segment == 291
        assert estimate.total == 873

    def test_movie_splits_runtime_across_acts(self):
        acts = [ActConfig(act_number=i, title=f"A{i}", synopsis="s", duration=0.5) for i in range(1, 5)]

        estimate = estimate_movie_credits(MovieConfig(title="T", synopsis="S", target_duration=2, acts=acts))

        assert estimate.per_segment == 92
        assert estimate.total == 368


# ============================================================================
# Prompts
# ============================================================================


class TestPrompts:
    """Tests for episode and act prompt building."""

    def test_premiere_prompt(self):
        series = harbor_lights()
        episode = series.episodes[0]
        episode.plot_points = ["the discovery", "the first lie"]

        prompt = build_episode_prompt(episode, series, is_first=True, is_last=False)

        assert prompt == (
            'noir TV series: "Harbor Lights". Setting: A fishing town. Episode 1: "Low Tide". '
            "Synopsis 1. Characters: Mara (protagonist): a retired detective. "
            "Key moments: the discovery, the first lie. "
            "This is the series premiere - establish the world and characters. "
            "Series arc: A smuggling ring unravels"
        )

    def test_middle_and_finale(self):
        series = harbor_lights()

        middle = build_episode_prompt(series.episodes[1], series)
        finale = build_episode_prompt(series.episodes[2], series, is_last=True)

        assert PREMIERE_NOTE not in middle
        assert FINALE_NOTE not in middle
        assert FINALE_NOTE in finale

    def test_bare_series_prompt(self):
        series = SeriesConfig(title="T", synopsis="S")
        episode = EpisodeConfig(episode_number=4, title="Four", synopsis="Things happen")

        assert build_episode_prompt(episode, series) == 'drama TV series: "T". Episode 4: "Four". Things happen'

    @pytest.mark.parametrize(
        "is_first,is_last,note",
        [
            (True, False, SETUP_NOTE),
            (False, False, CONFRONTATION_NOTE),
            (False, True, RESOLUTION_NOTE),
        ],
    )
    def test_act_guidance(self, is_first, is_last, note):
        movie = MovieConfig(title="Tide", synopsis="S", genre="thriller", setting="An oil rig")
        act = ActConfig(act_number=2, title="Pressure", synopsis="The storm hits", duration=2)

        prompt = build_act_prompt(act, movie, is_first=is_first, is_last=is_last)

        assert prompt.startswith('thriller film: "Tide". Setting: An oil rig. Act 2: "Pressure". The storm hits')
        assert prompt.endswith(note)

    def test_default_acts(self):
        acts = generate_default_acts(MovieConfig(title="Tide", synopsis="A rig in trouble.", target_duration=5))

        assert [a.title for a in acts] == ["Setup", "Confrontation", "Resolution"]
        assert [a.duration for a in acts] == [1, 3, 1]
        assert acts[0].synopsis == (
            'Opening of "Tide". A rig in trouble. Establish the world and introduce the main characters.'
        )

    def test_default_acts_are_at_least_a_minute(self):
        acts = generate_default_acts(MovieConfig(title="T", synopsis="S", target_duration=1))

        assert [a.duration for a in acts] == [1, 1, 1]


# ============================================================================
# Series production
# ============================================================================


class TestSeriesProduction:
    """Tests for producing a series episode by episode."""

    @pytest.mark.asyncio
    async def test_every_episode_succeeds(self):
        batch, producer = make_batch(episode_result(1), episode_result(2), episode_result(3, duration=None))
        settings = ProductionSettings(audio=AudioPreferences(include_voiceover=False))

        result = await batch.produce_series("proj-1", "auth0|user", harbor_lights(), settings)

        assert result.success is True
        assert result.error is None
        assert [v.segment_id for v in result.videos] == ["episode-1", "episode-2", "episode-3"]
        assert result.videos[0].title == "S2E1: Low Tide"
        # the third episode reported no duration, so the configured one is used
        assert result.total_duration == 90
        assert result.credits_used == 300
        assert result.progress.overall_progress == 100
        assert result.progress.completed_segments == 3
        assert all(s.status == SegmentStatus.COMPLETED for s in result.progress.segment_results)

        first = producer.produce.call_args_list[0].args[0]
        assert first.project_id == "proj-1"
        assert first.user_id == "auth0|user"
        assert first.title == "Low Tide"
        assert first.genre == "noir"
        assert first.target_duration == 30
        assert first.settings is settings
        assert PREMIERE_NOTE in first.prompt
        assert FINALE_NOTE in producer.produce.call_args_list[2].args[0].prompt

    @pytest.mark.asyncio
    async def test_failed_episode_is_recorded_and_not_counted(self):
        batch, _ = make_batch(
            episode_result(1),
            episode_result(2, credits_used=40, success=False, error="assembly: Render failed"),
            episode_result(3),
        )

        result = await batch.produce_series("proj-1", "auth0|user", harbor_lights())

        assert result.success is True
        assert [v.segment_id for v in result.videos] == ["episode-1", "episode-3"]
        assert result.credits_used == 200
        assert result.progress.errors == ["Episode 2 failed: assembly: Render failed"]
        statuses = [s.status for s in result.progress.segment_results]
        assert statuses == [SegmentStatus.COMPLETED, SegmentStatus.FAILED, SegmentStatus.COMPLETED]
        assert result.progress.segment_results[1].error == "assembly: Render failed"

    @pytest.mark.asyncio
    async def test_success_without_video_is_a_failure(self):
        no_video = EpisodeResult(success=True, credits_used=10, progress=None)
        batch, _ = make_batch(episode_result(1), no_video)

        result = await batch.produce_series("proj-1", "auth0|user", harbor_lights(episode_count=2))

        assert result.credits_used == 100
        assert result.progress.errors == ["Episode 2 failed: No video was produced"]

    @pytest.mark.asyncio
    async def test_raised_error_does_not_stop_the_batch(self):
        batch, producer = make_batch(RuntimeError("provider down"), episode_result(2))

        result = await batch.produce_series("proj-1", "auth0|user", harbor_lights(episode_count=2))

        assert result.success is True
        assert producer.produce.await_count == 2
        assert result.progress.errors == ["Episode 1 failed: provider down"]
        assert [v.segment_id for v in result.videos] == ["episode-2"]

    @pytest.mark.asyncio
    async def test_nothing_produced(self):
        batch, _ = make_batch(
            episode_result(1, credits_used=20, success=False, error="video: no clips"),
            episode_result(2, credits_used=20, success=False, error="video: no clips"),
        )

        result = await batch.produce_series("proj-1", "auth0|user", harbor_lights(episode_count=2))

        assert result.success is False
        assert result.error == "No episodes were successfully produced"
        assert result.videos == ()
        assert result.credits_used == 0
        assert len(result.progress.errors) == 2

    @pytest.mark.asyncio
    async def test_episode_warnings_are_labelled(self):
        batch, _ = make_batch(episode_result(1, warnings=("music: Music generation failed",)))

        result = await batch.produce_series("proj-1", "auth0|user", harbor_lights(episode_count=1))

        assert result.warnings == ("Episode 1: music: Music generation failed",)

    @pytest.mark.asyncio
    async def test_progress_snapshots(self):
        snapshots = []

        async def record(progress):
            snapshots.append(progress)

        batch, _ = make_batch(episode_result(1), episode_result(2), on_progress=record)

        await batch.produce_series("proj-1", "auth0|user", harbor_lights(episode_count=2))

        assert [s.overall_progress for s in snapshots] == [0, 0, 50, 50, 100]
        assert [s.completed_segments for s in snapshots] == [0, 1, 1, 2, 2]
        # each snapshot is a copy taken at the time it was sent
        assert snapshots[0].segment_results[0].status == SegmentStatus.PROCESSING
        assert snapshots[0].segment_results[1].status == SegmentStatus.PENDING
        assert snapshots[0].current_segment == "S2E1: Low Tide"
        assert snapshots[-1].segment_results[1].status == SegmentStatus.COMPLETED

        data = snapshots[-1].to_dict()
        assert data["type"] == "series"
        assert data["totalSegments"] == 2
        assert data["segmentResults"][0] == {
            "segmentId": "episode-1",
            "title": "S2E1: Low Tide",
            "status": "completed",
            "videoUrl": "https://blob/videos/segment-1.mp4",
        }

    @pytest.mark.asyncio
    async def test_quick_series(self):
        batch, producer = make_batch(*(episode_result(n) for n in range(1, 4)))

        result = await batch.quick_series(
            "proj-1", "auth0|user", "Drift", "Strangers share a lifeboat", episode_count=3, episode_duration=45
        )

        assert result.success is True
        requests = [call.args[0] for call in producer.produce.call_args_list]
        assert [r.title for r in requests] == ["Episode 1", "Episode 2", "Episode 3"]
        assert all(r.target_duration == 45 for r in requests)
        assert all(r.genre == "drama" for r in requests)
        assert "Pilot: Strangers share a lifeboat" in requests[0].prompt
        assert "Chapter 2 of Drift" in requests[1].prompt
        assert "Finale: Conclusion of Drift" in requests[2].prompt
        assert [v.title for v in result.videos][0] == "S1E1: Episode 1"


# ============================================================================
# Movie production
# ============================================================================


class TestMovieProduction:
    """Tests for producing a movie act by act."""

    @pytest.mark.asyncio
    async def test_default_acts_are_used(self):
        batch, producer = make_batch(episode_result(1), episode_result(2), episode_result(3))

        result = await batch.produce_movie("proj-1", "auth0|user", MovieConfig(title="Tide", synopsis="S"))

        assert result.type == "movie"
        assert [v.segment_id for v in result.videos] == ["act-1", "act-2", "act-3"]
        assert [v.title for v in result.videos] == ["Act 1: Setup", "Act 2: Confrontation", "Act 3: Resolution"]
        requests = [call.args[0] for call in producer.produce.call_args_list]
        assert [r.target_duration for r in requests] == [60, 180, 60]
        assert requests[0].title == "Tide - Act 1"
        assert requests[0].prompt.endswith(SETUP_NOTE)
        assert requests[2].prompt.endswith(RESOLUTION_NOTE)

    @pytest.mark.asyncio
    async def test_failed_act(self):
        batch, _ = make_batch(
            episode_result(1),
            episode_result(2, success=False, error="video: no clips"),
        )
        movie = MovieConfig(
            title="Tide",
            synopsis="S",
            acts=[
                ActConfig(act_number=1, title="Calm", synopsis="s", duration=1),
                ActConfig(act_number=2, title="Storm", synopsis="s", duration=1),
            ],
        )

        result = await batch.produce_movie("proj-1", "auth0|user", movie)

        assert result.success is True
        assert result.progress.errors == ["Act 2 failed: video: no clips"]

    @pytest.mark.asyncio
    async def test_no_act_produced(self):
        batch, _ = make_batch(*(episode_result(n, success=False, error="boom") for n in range(3)))

        result = await batch.produce_movie("proj-1", "auth0|user", MovieConfig(title="Tide", synopsis="S"))

        assert result.success is False
        assert result.error == "No acts were successfully produced"

    @pytest.mark.asyncio
    async def test_quick_movie(self):
        batch, producer = make_batch(*(episode_result(n) for n in range(1, 4)))

        result = await batch.quick_movie("proj-1", "auth0|user", "Tide", "A rig in trouble.", target_duration=2)

        assert result.success is True
        requests = [call.args[0] for call in producer.produce.call_args_list]
        # 0.5, 1 and 0.5 minutes round half up to 1, 1 and 1
        assert [r.target_duration for r in requests] == [60, 60, 60]
        assert all(r.genre == "drama" for r in requests)
