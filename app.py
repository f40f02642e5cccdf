"""Entry point for Streamlit (cloud/local).

Delegates to `streamlit_app.py`, so `streamlit run app.py` and
`streamlit run streamlit_app.py` start the same studio.
"""

from streamlit_app import main


if __name__ == "__main__":
    main()
