"""
Main entry point for running the address book application.
This module starts the development server for the Flask application.
"""
import os

from addressbook import create_app


def main():
    """
    Initialize and run the Flask application.

    The config class comes from ADDRESSBOOK_ENV; PORT picks the port.
    """
    application = create_app()
    application.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))


if __name__ == '__main__':
    main()
