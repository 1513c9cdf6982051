"""
Greenlight — Services Layer
============================

Service Inventory:
    - movie_service.py: MovieService (CRUD, optimistic locking, listing) and
                        validate_movie / build_list_query
    - filters.py:       Filters (page, page_size, sort safelist), validate_filters,
                        calculate_metadata

Services never touch HTTP objects; they raise GreenlightError subclasses that
the global handlers translate into responses.
"""
