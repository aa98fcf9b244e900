from sqlalchemy import BigInteger, Integer

# Hosted Postgres stores ids as bigint; SQLite only autoincrements INTEGER keys.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")
