from bqsession import sql
import os

with sql.connect(
    project=os.getenv("BIGQUERY_PROJECT"),
    dataset=os.getenv("BIGQUERY_DATASET"),
    location=os.getenv("BIGQUERY_LOCATION"),
) as connection:

    with connection.cursor() as cursor:
        cursor.execute("CREATE TABLE IF NOT EXISTS accounts (id INT64, balance INT64)")
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS transfers (from_id INT64, to_id INT64, amount INT64)"
        )
        cursor.execute("INSERT INTO accounts VALUES (1, 1000), (2, 500)")

        # Statements after BEGIN are held back and return no rows. They run together
        # as one BigQuery script when the transaction is committed.
        connection.begin()
        try:
            cursor.execute("UPDATE accounts SET balance = balance - 100 WHERE id = 1")
            cursor.execute("UPDATE accounts SET balance = balance + 100 WHERE id = 2")
            cursor.execute("INSERT INTO transfers VALUES (1, 2, 100)")

            connection.commit()
            print("Transaction committed successfully")
        except Exception as e:
            # Nothing has been sent yet, so rolling back just discards the statements
            connection.rollback()
            print(f"Transaction rolled back due to error: {e}")
            raise

        cursor.execute("SELECT * FROM accounts ORDER BY id")
        print("Accounts:", cursor.fetchall())

        cursor.execute("SELECT * FROM transfers")
        print("Transfers:", cursor.fetchall())

    # Drop the dataset along with its tables
    connection.drop_dataset(os.getenv("BIGQUERY_DATASET"))
