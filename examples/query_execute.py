from bqsession import sql
import os

with sql.connect(
    project=os.getenv("BIGQUERY_PROJECT"),
    dataset=os.getenv("BIGQUERY_DATASET"),
    location=os.getenv("BIGQUERY_LOCATION"),
) as connection:

    with connection.cursor() as cursor:
        cursor.execute(
            "SELECT name, SUM(number) AS total FROM `bigquery-public-data.usa_names.usa_1910_2013` "
            "WHERE state = %(state)s GROUP BY name ORDER BY total DESC LIMIT 10",
            {"state": "TX"},
        )
        result = cursor.fetchall()

        for row in result:
            print(row.name, row.total)
