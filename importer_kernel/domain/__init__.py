"""Pure kernel domain: clock abstraction and tagged result DTOs."""
