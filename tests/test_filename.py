from movieimport.filename import ParsedName, ParsedSeries, parse_movie_filename, parse_series_dirname, strip_extension


def test_tagged_name_yields_tmdb_id():
    parsed = parse_movie_filename("Inception (2010) (extid-27205).mkv")
    assert parsed == ParsedName(title="Inception", year=2010, tmdb_id=27205)


def test_tmdbid_tag_is_accepted():
    parsed = parse_movie_filename("/media/movies/Alien (1979) (tmdbid-348).mp4")
    assert parsed is not None
    assert parsed.title == "Alien"
    assert parsed.tmdb_id == 348


def test_dotted_title_is_spaced():
    parsed = parse_movie_filename("The.Matrix.1999 (1999).mkv")
    assert parsed == ParsedName(title="The Matrix 1999", year=1999)


def test_title_year_with_release_suffix():
    parsed = parse_movie_filename("Heat (1995) 1080p BluRay.mkv")
    assert parsed == ParsedName(title="Heat", year=1995)


def test_unmatched_name():
    assert parse_movie_filename("randomfile.mkv") is None
    assert parse_movie_filename("(2010).mkv") is None


def test_strip_extension():
    assert strip_extension("/a/b/Movie (2000).m2ts") == "Movie (2000)"


def test_series_dirname_forms():
    assert parse_series_dirname("Breaking Bad (tmdbid-1396)") == ParsedSeries(name="Breaking Bad", tmdb_id=1396)
    assert parse_series_dirname("/tv/Breaking Bad (2008) (TMDBID-1396)/") == ParsedSeries(
        name="Breaking Bad", year=2008, tmdb_id=1396
    )
    assert parse_series_dirname("The.Wire (2002)") == ParsedSeries(name="The Wire", year=2002)
    assert parse_series_dirname("Twin.Peaks") == ParsedSeries(name="Twin Peaks")
    assert parse_series_dirname(" ... ") is None
