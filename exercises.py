"""The Chinook exercise catalog.

Every question is split into named intermediate steps plus a final query.
Each builder receives the :class:`~composer.Bindings` defined so far, so the
same exercise can be run inline, as CTEs or over temporary tables.
"""

from typing import List, Union

from sqlalchemy import case, distinct, extract, func, select

from data_models import DivisionMode, Exercise, Step, Strategy
from schema import Customer, Employee, Genre, Invoice, InvoiceLine, Track

COHORT_YEAR = 2022
MILLISECONDS_PER_MINUTE = 60000


def month_difference(start, end):
    """Whole calendar months from start to end, counted like MySQL's TIMESTAMPDIFF(MONTH, ...)."""
    months = (
        (extract("year", end) - extract("year", start)) * 12
        + (extract("month", end) - extract("month", start))
    )
    return months - case((extract("day", end) < extract("day", start), 1), else_=0)


def _track_genre():
    return Track.join(Genre, Track.c.GenreId == Genre.c.GenreId)


def _line_genre():
    return InvoiceLine.join(Track, InvoiceLine.c.TrackId == Track.c.TrackId).join(
        Genre, Track.c.GenreId == Genre.c.GenreId
    )


def _customer_line_genre():
    return (
        Customer.join(Invoice, Customer.c.CustomerId == Invoice.c.CustomerId)
        .join(InvoiceLine, Invoice.c.InvoiceId == InvoiceLine.c.InvoiceId)
        .join(Track, InvoiceLine.c.TrackId == Track.c.TrackId)
        .join(Genre, Track.c.GenreId == Genre.c.GenreId)
    )


# 1
def _genre_length(genre):
    def build(b):
        return (
            select(func.sum(Track.c.Milliseconds).label("TotalMilliseconds"))
            .select_from(_track_genre())
            .where(Genre.c.Name == genre)
        )
    return build


def _length_difference(b):
    difference = b["RockLength"].scalar() - b["JazzLength"].scalar()
    return select(b.ratio(difference, MILLISECONDS_PER_MINUTE).label("LengthDifferenceMinutes"))


# 2
def _average_length(b):
    return select(func.avg(Track.c.Milliseconds).label("AverageMilliseconds"))


def _tracks_above_average(b):
    return (
        select(func.count().label("TracksAboveAverageLength"))
        .select_from(Track)
        .where(Track.c.Milliseconds > b["AverageLength"].scalar())
    )


# 3 and 4
def _lines_sold(b):
    return select(func.count(InvoiceLine.c.TrackId).label("LinesSold"))


def _percentage_sold_per_genre(b):
    return (
        select(
            Genre.c.Name.label("Genre"),
            b.ratio(func.count(InvoiceLine.c.TrackId) * 100, b["LinesSold"].scalar())
            .label("PercentageSold"),
        )
        .select_from(_line_genre())
        .group_by(Genre.c.GenreId, Genre.c.Name)
    )


def _genre_percentages(b):
    # Checking the total only makes sense without truncation.
    return (
        select(
            Genre.c.Name.label("Genre"),
            b.ratio(
                func.count(InvoiceLine.c.TrackId) * 100,
                b["LinesSold"].scalar(),
                mode=DivisionMode.FLOAT,
            ).label("PercentageSold"),
        )
        .select_from(_line_genre())
        .group_by(Genre.c.Name)
    )


def _sum_of_percentages(b):
    percentages = b["GenrePercentages"].relation()
    return select(func.sum(percentages.c.PercentageSold).label("TotalPercentage"))


# 5
def _track_counts(b):
    return (
        select(func.count().label("NumTracks"))
        .select_from(Track)
        .group_by(Track.c.GenreId)
    )


def _range_of_tracks(b):
    counts = b["TrackCounts"].relation()
    return select(
        (func.max(counts.c.NumTracks) - func.min(counts.c.NumTracks)).label("RangeOfTracksByGenre")
    )


# 6
def _customer_spending(b):
    return (
        select(Customer.c.CustomerId, func.sum(Invoice.c.Total).label("TotalSpending"))
        .select_from(Customer.join(Invoice, Customer.c.CustomerId == Invoice.c.CustomerId))
        .group_by(Customer.c.CustomerId)
    )


def _average_lifetime_spend(b):
    spending = b["CustomerSpending"].relation()
    return select(func.round(func.avg(spending.c.TotalSpending), 2).label("AvgLifetimeSpend"))


# 7
def _tracks_on_invoice(b):
    return (
        select(
            InvoiceLine.c.InvoiceId,
            Track.c.AlbumId,
            func.count(distinct(InvoiceLine.c.TrackId)).label("InvoiceTrackCount"),
        )
        .select_from(InvoiceLine.outerjoin(Track, InvoiceLine.c.TrackId == Track.c.TrackId))
        .group_by(InvoiceLine.c.InvoiceId, Track.c.AlbumId)
    )


def _tracks_on_album(b):
    return (
        select(Track.c.AlbumId, func.count(distinct(Track.c.TrackId)).label("AlbumTrackCount"))
        .group_by(Track.c.AlbumId)
    )


def _complete_albums(b):
    on_invoice = b["TracksOnInvoice"].relation()
    on_album = b["TracksOnAlbum"].relation()
    return (
        select(func.count(on_album.c.AlbumTrackCount).label("CompleteAlbumsSold"))
        .select_from(on_invoice.outerjoin(on_album, on_invoice.c.AlbumId == on_album.c.AlbumId))
        .where(on_invoice.c.InvoiceTrackCount == on_album.c.AlbumTrackCount)
    )


# 8
def _customer_spending_per_genre(b):
    return (
        select(
            Genre.c.Name.label("Genre"),
            Customer.c.CustomerId,
            func.sum(InvoiceLine.c.UnitPrice * InvoiceLine.c.Quantity).label("Spend"),
        )
        .select_from(_customer_line_genre())
        .group_by(Genre.c.Name, Customer.c.CustomerId)
    )


def _max_spend_per_genre(b):
    spending = b["CustomerSpendingPerGenre"].relation()
    max_spend = func.max(spending.c.Spend)
    return (
        select(spending.c.Genre, max_spend.label("MaxSpend"))
        .group_by(spending.c.Genre)
        .order_by(max_spend.desc())
    )


# 9
def _past_customers(b):
    return (
        select(Invoice.c.CustomerId)
        .distinct()
        .where(extract("year", Invoice.c.InvoiceDate) == COHORT_YEAR)
    )


def _percentage_returning(b):
    past = b["PastCustomers"]
    returning = func.count(distinct(Invoice.c.CustomerId)) * 100
    return select(
        b.ratio(returning, past.row_count()).label("PercentageReturning")
    ).where(
        extract("year", Invoice.c.InvoiceDate) > COHORT_YEAR,
        Invoice.c.CustomerId.in_(past.values("CustomerId")),
    )


# 10
def _amount_sold_per_employee_per_genre(b):
    return (
        select(
            Employee.c.EmployeeId,
            (Employee.c.FirstName + " " + Employee.c.LastName).label("EmployeeName"),
            Genre.c.Name.label("GenreName"),
            func.sum(InvoiceLine.c.Quantity).label("QuantitySoldInGenre"),
        )
        .select_from(
            Employee.join(Customer, Employee.c.EmployeeId == Customer.c.SupportRepId)
            .join(Invoice, Customer.c.CustomerId == Invoice.c.CustomerId)
            .join(InvoiceLine, Invoice.c.InvoiceId == InvoiceLine.c.InvoiceId)
            .join(Track, InvoiceLine.c.TrackId == Track.c.TrackId)
            .join(Genre, Track.c.GenreId == Genre.c.GenreId)
        )
        .group_by(
            Employee.c.EmployeeId, Employee.c.FirstName, Employee.c.LastName,
            Genre.c.GenreId, Genre.c.Name,
        )
    )


def _max_sold_per_employee(b):
    amounts = b["AmountSoldPerEmployeePerGenre"].relation()
    return (
        select(
            amounts.c.EmployeeId,
            amounts.c.EmployeeName,
            func.max(amounts.c.QuantitySoldInGenre).label("MaxSold"),
        )
        .group_by(amounts.c.EmployeeId, amounts.c.EmployeeName)
    )


def _best_genre_per_employee(b):
    amounts = b["AmountSoldPerEmployeePerGenre"].relation()
    best = b["MaxSoldPerEmployee"].relation()
    return (
        select(amounts.c.EmployeeName, amounts.c.GenreName)
        .select_from(best.join(amounts, best.c.EmployeeId == amounts.c.EmployeeId))
        .where(best.c.MaxSold == amounts.c.QuantitySoldInGenre)
    )


# 11
def _first_purchase(b):
    return (
        select(
            Invoice.c.CustomerId,
            func.min(func.date(Invoice.c.InvoiceDate)).label("DateOfFirstPurchase"),
        )
        .group_by(Invoice.c.CustomerId)
    )


def _second_purchase(b):
    first = b["FirstPurchase"].relation()
    return (
        select(
            Invoice.c.CustomerId,
            func.min(func.date(Invoice.c.InvoiceDate)).label("DateOfSecondPurchase"),
        )
        .select_from(Invoice.join(first, Invoice.c.CustomerId == first.c.CustomerId))
        .where(func.date(Invoice.c.InvoiceDate) > first.c.DateOfFirstPurchase)
        .group_by(Invoice.c.CustomerId)
    )


def _second_purchase_next_month(b):
    first = b["FirstPurchase"].relation()
    second = b["SecondPurchase"].relation()
    return (
        select(func.count().label("CustomersReturningNextMonth"))
        .select_from(first.join(second, first.c.CustomerId == second.c.CustomerId))
        .where(month_difference(first.c.DateOfFirstPurchase, second.c.DateOfSecondPurchase) == 1)
    )


EXERCISES: List[Exercise] = [
    Exercise(
        id=1,
        slug="rock_jazz_length_difference",
        question="What is the difference in minutes between the total length of 'Rock' tracks and 'Jazz' tracks?",
        steps=[
            Step(name="RockLength", build=_genre_length("Rock")),
            Step(name="JazzLength", build=_genre_length("Jazz")),
        ],
        final=_length_difference,
        preferred=Strategy.INLINE,
    ),
    Exercise(
        id=2,
        slug="tracks_above_average_length",
        question="How many tracks have a length greater than the average track length?",
        steps=[Step(name="AverageLength", build=_average_length)],
        final=_tracks_above_average,
        preferred=Strategy.INLINE,
    ),
    Exercise(
        id=3,
        slug="percentage_sold_per_genre",
        question="What is the percentage of tracks sold per genre?",
        steps=[Step(name="LinesSold", build=_lines_sold)],
        final=_percentage_sold_per_genre,
        preferred=Strategy.INLINE,
        notes="Percentages truncate when DIVISION_MODE=integer.",
    ),
    Exercise(
        id=4,
        slug="genre_percentages_total",
        question="Can you check that the column of percentages adds up to 100%?",
        steps=[
            Step(name="LinesSold", build=_lines_sold),
            Step(name="GenrePercentages", build=_genre_percentages),
        ],
        final=_sum_of_percentages,
        preferred=Strategy.NAMED,
    ),
    Exercise(
        id=5,
        slug="genre_track_count_range",
        question="What is the difference between the highest number of tracks in a genre and the lowest?",
        steps=[Step(name="TrackCounts", build=_track_counts)],
        final=_range_of_tracks,
        preferred=Strategy.INLINE,
    ),
    Exercise(
        id=6,
        slug="average_lifetime_spend",
        question="What is the average value of Chinook customers (total spending)?",
        steps=[Step(name="CustomerSpending", build=_customer_spending)],
        final=_average_lifetime_spend,
        preferred=Strategy.INLINE,
    ),
    Exercise(
        id=7,
        slug="complete_albums_sold",
        question=(
            "How many complete albums were sold? Not just tracks from an album, "
            "but the whole album bought on one invoice."
        ),
        steps=[
            Step(name="TracksOnInvoice", build=_tracks_on_invoice),
            Step(name="TracksOnAlbum", build=_tracks_on_album),
        ],
        final=_complete_albums,
        preferred=Strategy.MATERIALIZED,
    ),
    Exercise(
        id=8,
        slug="max_customer_spend_per_genre",
        question="What is the maximum spent by a customer in each genre?",
        steps=[Step(name="CustomerSpendingPerGenre", build=_customer_spending_per_genre)],
        final=_max_spend_per_genre,
        preferred=Strategy.NAMED,
    ),
    Exercise(
        id=9,
        slug="returning_customers_percentage",
        question=(
            f"What percentage of customers who made a purchase in {COHORT_YEAR} returned "
            "to make additional purchases in subsequent years?"
        ),
        steps=[Step(name="PastCustomers", build=_past_customers)],
        final=_percentage_returning,
        preferred=Strategy.NAMED,
    ),
    Exercise(
        id=10,
        slug="best_genre_per_employee",
        question=(
            "Which genre is each employee most successful at selling? "
            "Most successful is greatest amount of tracks sold."
        ),
        steps=[
            Step(name="AmountSoldPerEmployeePerGenre", build=_amount_sold_per_employee_per_genre),
            Step(name="MaxSoldPerEmployee", build=_max_sold_per_employee),
        ],
        final=_best_genre_per_employee,
        preferred=Strategy.MATERIALIZED,
        notes="Ties return one row per winning genre.",
    ),
    Exercise(
        id=11,
        slug="second_purchase_next_month",
        question="How many customers made a second purchase the month after their first purchase?",
        steps=[
            Step(name="FirstPurchase", build=_first_purchase),
            Step(name="SecondPurchase", build=_second_purchase),
        ],
        final=_second_purchase_next_month,
        preferred=Strategy.NAMED,
    ),
]


def get_exercise(key: Union[int, str]) -> Exercise:
    """Look an exercise up by id (int or numeric string) or slug."""
    for exercise in EXERCISES:
        if exercise.id == key or exercise.slug == key or str(exercise.id) == str(key):
            return exercise
    raise KeyError(f"Unknown exercise: {key}")
